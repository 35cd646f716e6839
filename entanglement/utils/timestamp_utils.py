"""
Timestamp utilities for consistent time handling across the system.
"""

import time
from datetime import datetime, timezone
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def to_seconds_str(timestamp: Optional[int] = None) -> str:
    """Convert timestamp to seconds string format.

    Args:
        timestamp: Unix timestamp in seconds (optional, uses current time if None)

    Returns:
        Seconds timestamp as string
    """
    if timestamp is None:
        timestamp = time.time()
    return str(int(timestamp))


def to_datetime(timestamp: Optional[float] = None) -> datetime:
    """Convert timestamp to a timezone-aware UTC datetime.

    Args:
        timestamp: Unix timestamp in seconds (optional, uses current time if None)

    Returns:
        datetime object
    """
    if timestamp is None:
        timestamp = time.time()
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 string, epoch seconds/milliseconds or datetime into UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().lstrip('-').isdigit()):
        seconds = float(value)
        # Millisecond epochs are written by the journaling front end
        if abs(seconds) > 1e11:
            seconds /= 1000.0
        return to_datetime(seconds)
    parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def days_between(first: datetime, second: datetime) -> float:
    """Absolute distance between two datetimes in fractional days."""
    return abs((first - second).total_seconds()) / SECONDS_PER_DAY
