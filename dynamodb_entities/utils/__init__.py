from .pagination import decode_last_key, encode_last_key
from .timezone import (
    ensure_timezone_aware,
    from_epoch_millis,
    to_epoch_millis,
    to_user_timezone,
    to_utc,
    utc_now_millis,
)

__all__ = [
    # Pagination
    "decode_last_key",
    "encode_last_key",

    # Timezone
    "ensure_timezone_aware",
    "from_epoch_millis",
    "to_epoch_millis",
    "to_user_timezone",
    "to_utc",
    "utc_now_millis",
]
