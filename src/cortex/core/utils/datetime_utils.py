"""
Centralized datetime utilities for Cortex.

All datetimes are handled in UTC. Notes coming from the store carry
ISO strings, SQLite timestamps or epoch values; everything is normalized
here before it reaches filters or ranking.
"""

from datetime import datetime, timezone
from typing import Union


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime is in UTC timezone.

    Naive datetimes are assumed to already be UTC.

    Args:
        dt: Datetime to convert

    Returns:
        Datetime in UTC with timezone info
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    elif dt.tzinfo == timezone.utc:
        return dt
    else:
        return dt.astimezone(timezone.utc)


def parse_iso_datetime(value: Union[str, int, float, datetime]) -> datetime:
    """
    Parse a stored timestamp into a UTC datetime.

    Handles:
    - 2024-01-01T12:00:00
    - 2024-01-01T12:00:00Z
    - 2024-01-01 12:00:00 (SQLite CURRENT_TIMESTAMP)
    - 2024-01-01T12:00:00.123456+02:00
    - epoch seconds or milliseconds

    Args:
        value: ISO string, epoch number or datetime

    Returns:
        Parsed datetime in UTC with timezone info

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    iso_string = str(value).strip()
    if iso_string.endswith('Z'):
        iso_string = iso_string[:-1] + '+00:00'

    try:
        return ensure_utc(datetime.fromisoformat(iso_string))
    except ValueError as e:
        raise ValueError(f"Invalid ISO datetime string: {value}") from e


def format_iso(dt: datetime) -> str:
    """
    Format datetime to ISO string with Z suffix.

    Args:
        dt: Datetime to format (will be converted to UTC)

    Returns:
        ISO formatted string, e.g. "2024-01-15T10:30:45.123456Z"
    """
    return ensure_utc(dt).isoformat().replace('+00:00', 'Z')


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from ``earlier`` to ``later`` (negative if reversed)."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 86400.0
