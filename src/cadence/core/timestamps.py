"""
ID generation and UTC timestamp utilities (stdlib-only).

Manifesto:
    Instance rows are keyed by ``(cadence_id, scheduled_for)`` and the
    store compares timestamps as text. That only works if every
    timestamp is written the same way: UTC, fixed width. This module is
    the one place that decides the format.

    - **generate_id():** Time-sortable unique IDs (26-char, base32)
    - **utc_now():** Timezone-aware UTC datetime
    - **to_iso8601() / from_iso8601():** Fixed-width UTC serialization

Tags:
    timestamps, ulid, utc, datetime, stdlib-only

STDLIB ONLY - NO PYDANTIC.
"""

import random
import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_aware(dt: datetime, name: str = "datetime") -> datetime:
    """Reject naive datetimes; return *dt* converted to UTC."""
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware, got naive {dt!r}")
    return dt.astimezone(UTC)


def resolve_now(dt: datetime | None, name: str = "now") -> datetime:
    """An explicit instant (validated) or the current UTC time."""
    return utc_now() if dt is None else ensure_aware(dt, name)


def generate_id() -> str:
    """
    Generate a ULID-like identifier.

    Format: 26 characters, base32 encoded, time-sortable.
    """
    timestamp_ms = int(time.time() * 1000)
    timestamp_chars = _encode_base32(timestamp_ms, 10)
    random_part = "".join(random.choices(_ENCODING, k=16))
    return timestamp_chars + random_part


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert an aware datetime to a fixed-width UTC ISO 8601 string.

    ``2025-03-08T14:00:00.000000+00:00`` — microseconds are always
    present so lexical order matches chronological order.
    """
    if dt is None:
        return None
    return ensure_aware(dt).isoformat(timespec="microseconds")


def from_iso8601(s: str | datetime | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime.

    Drivers that already return ``datetime`` objects (PostgreSQL) pass
    through; naive values are assumed to be UTC.
    """
    if s is None:
        return None
    dt = s if isinstance(s, datetime) else datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


# ULID base32 alphabet (Crockford's)
_ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ENCODING_LEN = len(_ENCODING)


def _encode_base32(value: int, length: int) -> str:
    """Encode integer to base32 string of fixed length."""
    result = []
    for _ in range(length):
        result.append(_ENCODING[value % _ENCODING_LEN])
        value //= _ENCODING_LEN
    return "".join(reversed(result))
