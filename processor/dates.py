"""Calendar date helpers for the YYYY-MM-DD storage form."""
import re
from datetime import date, datetime, time
from typing import Optional

YMD_PATTERN = re.compile(r'\d{4}-\d{2}-\d{2}', re.ASCII)
INPUT_PATTERN = re.compile(r'(\d{4})/(\d{1,2})/(\d{1,2})', re.ASCII)


def format_ymd(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.strftime('%Y-%m-%d')


def parse_ymd(value: str) -> Optional[date]:
    """
    Parse a strict YYYY-MM-DD string.

    Args:
        value: Date string in storage form

    Returns:
        date object, or None if the string does not match the pattern or
        names a day that does not exist (e.g. 2024-02-30)
    """
    if not isinstance(value, str) or not YMD_PATTERN.fullmatch(value):
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        return None


def format_input_date(value: date) -> str:
    """Format a date the way the entry form shows it (YYYY/MM/DD)."""
    return value.strftime('%Y/%m/%d')


def parse_input_date(value: str) -> Optional[date]:
    """
    Parse a date typed into the entry form.

    Accepts YYYY/MM/DD with single-digit month or day, and the storage
    form YYYY-MM-DD.

    Args:
        value: User-entered date string

    Returns:
        date object or None if parsing fails
    """
    if not isinstance(value, str):
        return None
    value = value.strip()
    if YMD_PATTERN.fullmatch(value):
        return parse_ymd(value)
    match = INPUT_PATTERN.fullmatch(value)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_display_date(value: date) -> str:
    """Format a date as M/D/YYYY."""
    return f"{value.month}/{value.day}/{value.year}"


def midnight(value: date) -> datetime:
    return datetime.combine(value, time.min)


def to_datetime(value) -> datetime:
    """Promote a date to midnight; datetimes pass through."""
    if isinstance(value, datetime):
        return value
    return midnight(value)


def parse_reminder(value: str) -> Optional[datetime]:
    """
    Parse an ISO 8601 reminder date-time.

    Timezone-aware values are converted to naive local time so they can
    be compared with datetime.now().

    Args:
        value: ISO date-time string (e.g. 2024-01-15T09:30:00)

    Returns:
        Naive datetime or None if parsing fails
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
    except (ValueError, OverflowError):
        return None
    return parsed
