"""Timezone and epoch helpers used by the value codec and repositories.

Dates are stored as UTC epoch milliseconds. Naive datetimes are interpreted in
an assumed timezone (UTC unless configured otherwise) before they are stored.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _zone(tz_name: str):
    if tz_name in ("UTC", "GMT"):
        return timezone.utc
    return ZoneInfo(tz_name)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC.

    Naive datetimes are assumed to already be in UTC.

    Examples:
        >>> dt = datetime(2024, 1, 1, 10, 0, tzinfo=ZoneInfo('America/New_York'))
        >>> to_utc(dt)  # -> 2024-01-01 15:00:00+00:00
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def ensure_timezone_aware(dt: datetime, assumed_tz: Optional[str] = "UTC") -> datetime:
    """Ensure datetime has timezone information.

    If the datetime is naive, adds the specified timezone. If already timezone-aware,
    returns unchanged.

    Examples:
        >>> dt = datetime(2024, 1, 1, 10, 0)
        >>> ensure_timezone_aware(dt, "America/New_York")  # -> 2024-01-01 10:00:00-05:00
    """
    if dt is None:
        return None

    if dt.tzinfo is not None:
        return dt

    return dt.replace(tzinfo=_zone(assumed_tz or "UTC"))


def to_user_timezone(dt: datetime, user_tz: Optional[str] = None) -> datetime:
    """Convert UTC datetime to user's timezone for display.

    Returns the datetime unchanged when user_tz is None.
    """
    if dt is None or user_tz is None:
        return dt

    return dt.astimezone(_zone(user_tz))


def to_epoch_millis(dt: datetime, assumed_tz: Optional[str] = "UTC") -> int:
    """Convert a datetime to integer milliseconds since the Unix epoch."""
    aware = ensure_timezone_aware(dt, assumed_tz)
    delta = aware - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def from_epoch_millis(millis: int) -> datetime:
    """Build an aware UTC datetime from milliseconds since the Unix epoch."""
    return _EPOCH + timedelta(milliseconds=int(millis))


def utc_now_millis() -> datetime:
    """Current UTC time truncated to millisecond precision.

    Stored dates have millisecond resolution, so timestamps written by the
    repository are truncated up front to survive a round trip unchanged.
    """
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)
