"""
Datetime utilities for consistent date and time handling across the application.
Database timestamps are timezone-aware UTC; appointment dates and clock times
are naive values in the business timezone.
"""

import re
from datetime import date, datetime, time, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

WEEKDAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def business_now(tz_name: str) -> datetime:
    """
    Get the current wall-clock time at the business location.

    Args:
        tz_name: IANA timezone name (e.g. "Pacific/Guam")

    Returns:
        Naive datetime in the business timezone
    """
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Args:
        iso_string: ISO format datetime string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    normalized = iso_string.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """
    Convert datetime to ISO format string.

    Args:
        dt: Datetime object (timezone-aware or naive)

    Returns:
        ISO format string
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


def parse_time_string(value: Any) -> Optional[time]:
    """
    Parse an "HH:MM" or "HH:MM:SS" clock string.

    Never raises: anything that is not a valid clock time yields None.

    Args:
        value: Candidate time value (string or datetime.time)

    Returns:
        Parsed time, or None if the value is malformed
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not value or not isinstance(value, str):
        return None

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None

    return time(int(match.group(1)), int(match.group(2)))


def format_time(value: time) -> str:
    """Format a clock time as "HH:MM"."""
    return value.strftime("%H:%M")


def parse_date(value: Any) -> date:
    """
    Parse a "YYYY-MM-DD" date.

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValueError(f"Invalid date string: {value}") from e


def weekday_index(target_date: date) -> int:
    """Weekday number with Sunday=0 ... Saturday=6."""
    return (target_date.weekday() + 1) % 7


def weekday_name(target_date: date) -> str:
    """English weekday name ("Tuesday")."""
    return WEEKDAY_NAMES[weekday_index(target_date)]
