"""Continuation tokens for query and scan results.

A token is the JSON encoding of the store's LastEvaluatedKey. It is opaque to
callers and only meaningful when handed back to the same repository.
"""

import json
from typing import Any, Dict, Optional

from ..exceptions import ValidationError


def encode_last_key(last_evaluated_key: Optional[Dict[str, Any]]) -> Optional[str]:
    """Encode a LastEvaluatedKey as a token; None when the result is exhausted."""
    if not last_evaluated_key:
        return None
    return json.dumps(last_evaluated_key, sort_keys=True)


def decode_last_key(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a token produced by encode_last_key().

    Raises:
        ValidationError: If the token is not a JSON object
    """
    if not token:
        return None
    try:
        decoded = json.loads(token)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Malformed pagination token: {token!r}", original_error=e) from e
    if not isinstance(decoded, dict):
        raise ValidationError(f"Malformed pagination token: {token!r}")
    return decoded
