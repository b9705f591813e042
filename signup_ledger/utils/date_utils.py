"""Date and time utility functions."""
from datetime import date, datetime, timezone
from typing import Optional, Union


def parse_date_key(date_key: str) -> date:
    """
    Parse date key string in YYYY-MM-DD format.

    Args:
        date_key: Date string (e.g., "2025-11-27")

    Returns:
        date object

    Raises:
        ValueError: If date format is invalid
    """
    return datetime.strptime(date_key, "%Y-%m-%d").date()


def format_date_key(value: Union[date, datetime]) -> str:
    """Format a date (or the calendar date of a datetime) as YYYY-MM-DD."""
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def format_long_date(date_key: str) -> str:
    """
    Render a date key in long human-readable form.

    Args:
        date_key: Date in YYYY-MM-DD format

    Returns:
        e.g. "Thursday, November 27, 2025". Keys that are not valid
        dates are returned unchanged.
    """
    try:
        day = parse_date_key(date_key)
    except (TypeError, ValueError):
        return date_key
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def format_short_month(date_key: str) -> str:
    """Return the abbreviated month name ("Nov") of a date key."""
    try:
        return f"{parse_date_key(date_key):%b}"
    except (TypeError, ValueError):
        return ""


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """
    Return a UTC ISO 8601 timestamp with millisecond precision.

    Example: "2025-11-20T15:04:05.123Z"
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
