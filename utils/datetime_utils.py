"""
Timezone-aware datetime utilities for the ingestion pipeline.

All functions return timezone-aware datetime objects in UTC. Values read back
from SQLite come out naive, so anything compared against "now" should pass
through ensure_utc() first.
"""

from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """
    Get the current UTC time as a timezone-aware datetime object.

    Returns:
        datetime: Current UTC time with timezone information
    """
    return datetime.now(timezone.utc)


def utc_from_timestamp(timestamp: Union[int, float]) -> datetime:
    """
    Convert a Unix timestamp (seconds) to a timezone-aware UTC datetime.

    Example:
        >>> dt = utc_from_timestamp(1234567890)
        >>> print(dt.tzinfo)  # UTC
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def utc_from_milliseconds(timestamp_ms: Union[int, float]) -> datetime:
    """Convert a JavaScript-style millisecond timestamp to a UTC datetime."""
    return utc_from_timestamp(timestamp_ms / 1000.0)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime object is timezone-aware and in UTC.

    If the datetime is naive (no timezone), it assumes UTC.
    If the datetime has a different timezone, it converts to UTC.

    Args:
        dt: Datetime object (may be naive or timezone-aware)

    Returns:
        datetime: Timezone-aware datetime in UTC
    """
    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo != timezone.utc:
        return dt.astimezone(timezone.utc)
    else:
        return dt


def hour_bucket(dt: Optional[datetime] = None) -> str:
    """
    Format a datetime as its UTC hour bucket, e.g. '2025-03-01T14'.

    Args:
        dt: Datetime to bucket (defaults to now)
    """
    return ensure_utc(dt or utc_now()).strftime('%Y-%m-%dT%H')


def day_bucket(dt: Optional[datetime] = None) -> str:
    """Format a datetime as its UTC calendar day, e.g. '2025-03-01'."""
    return ensure_utc(dt or utc_now()).strftime('%Y-%m-%d')


def format_utc_iso(dt: Optional[datetime] = None) -> str:
    """
    Format a datetime as an ISO string in UTC.

    Args:
        dt: Datetime to format (defaults to current UTC time)

    Returns:
        str: ISO formatted datetime string with timezone
    """
    if dt is None:
        dt = utc_now()
    return ensure_utc(dt).isoformat()
