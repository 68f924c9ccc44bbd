"""
Timezone-aware datetime utilities.

All datetime operations should use these helpers to ensure consistent
timezone handling across the codebase.
"""
from datetime import date, datetime, timezone
from typing import Any, Optional, Union


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[Union[str, datetime]]) -> Optional[datetime]:
    """
    Parse a timestamp, ensuring timezone-aware UTC.

    Handles:
    - ISO format strings with Z suffix
    - ISO format strings with +00:00 offset
    - Naive datetimes (assumed UTC)
    - Already timezone-aware datetimes

    Returns:
        Timezone-aware datetime in UTC, or None if input is None/empty/unparseable
    """
    if value is None:
        return None

    if isinstance(value, str):
        if not value:
            return None
        value = value.strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None
    elif isinstance(value, datetime):
        dt = value
    else:
        return None

    # Ensure timezone-aware (assume UTC if naive)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_date_value(value: Any) -> Optional[date]:
    """
    Parse the stored value of a date field.

    Accepts date/datetime objects and ISO-8601 strings (date only or full
    timestamp). Timestamps are converted to UTC before the date is taken so
    the rendered day does not depend on the host timezone.
    """
    if isinstance(value, datetime):
        return parse_timestamp(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            try:
                return date.fromisoformat(text)
            except ValueError:
                return None
        dt = parse_timestamp(text)
        return dt.date() if dt else None
    return None


def format_date_value(value: Any, date_format: str) -> Optional[str]:
    """Render a date field value with a fixed, locale-independent pattern."""
    parsed = parse_date_value(value)
    if parsed is None:
        return None
    return parsed.strftime(date_format)
