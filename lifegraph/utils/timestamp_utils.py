"""
Timestamp utilities for consistent time handling across the system.

All datetimes produced here are timezone-aware UTC.
"""

import time
from datetime import date, datetime, timezone
from typing import Optional, Union

TimestampLike = Union[datetime, str, int, float, None]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_datetime(timestamp: TimestampLike = None) -> Optional[datetime]:
    """Convert a timestamp-ish value to an aware UTC datetime.

    Args:
        timestamp: datetime, ISO-8601 string (``Z`` suffix accepted) or unix seconds.
            Uses the current time if None.

    Returns:
        datetime object, or None for an empty or unparseable string
    """
    if timestamp is None:
        return datetime.fromtimestamp(time.time(), tz=timezone.utc)

    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    if isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    value = str(timestamp).strip()
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    try:
        return to_datetime(datetime.fromisoformat(value))
    except ValueError:
        return None


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render an aware datetime as ISO-8601, passing None through."""
    if value is None:
        return None
    return to_datetime(value).isoformat()


def day_key(value: Union[datetime, date]) -> str:
    """Calendar day key (YYYY-MM-DD) used to bucket trends."""
    if isinstance(value, datetime):
        value = to_datetime(value).date()
    return value.isoformat()
