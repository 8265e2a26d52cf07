from .ids import new_state_token
from .mime import DEFAULT_MIME, guess_mime_type
from .time import (
    from_naive_utc,
    normalize_dt,
    now_utc,
    parse_rfc3339,
    to_naive_utc,
    to_rfc3339,
)
from .units import format_bytes

__all__ = [
    "new_state_token",
    "DEFAULT_MIME",
    "guess_mime_type",
    "now_utc",
    "parse_rfc3339",
    "to_rfc3339",
    "normalize_dt",
    "to_naive_utc",
    "from_naive_utc",
    "format_bytes",
]
