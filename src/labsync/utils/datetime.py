"""Datetime utilities with consistent UTC timezone handling.

All timestamps exchanged with the local and remote stores are ISO-8601
strings. Inside the library they are timezone-aware UTC datetimes.
"""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info.

    Args:
        dt: Datetime to convert, or None

    Returns:
        ISO format string with timezone, or None if input was None
    """
    if dt is None:
        return None

    return ensure_aware(dt).isoformat()


def parse_iso(value) -> Optional[datetime]:
    """Parse an ISO-8601 value into an aware datetime.

    Accepts datetimes (returned as aware), strings with a trailing ``Z``
    (as produced by JavaScript clients) and empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def duration_ms(start: datetime, end: datetime) -> int:
    """Milliseconds elapsed between two datetimes."""
    delta = ensure_aware(end) - ensure_aware(start)
    return int(round(delta.total_seconds() * 1000))
