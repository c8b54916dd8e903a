"""
Datetime utility functions.
Calendar helpers for Sundays, months and quarters.
"""

import calendar
import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple
import pytz

QUARTER_PATTERN = re.compile(r"^(\d{4})-Q([1-4])$")


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (sqlite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def get_sundays_in_month(year: int, month: int) -> List[int]:
    """
    Get the day-of-month numbers that fall on a Sunday.

    Examples:
        >>> get_sundays_in_month(2024, 3)
        [3, 10, 17, 24, 31]
    """
    _, days_in_month = calendar.monthrange(year, month)
    return [
        day
        for day in range(1, days_in_month + 1)
        if date(year, month, day).weekday() == calendar.SUNDAY
    ]


def add_months(year: int, month: int, count: int) -> Tuple[int, int]:
    """Shift a (year, month) pair by count months."""
    index = year * 12 + (month - 1) + count
    return index // 12, index % 12 + 1


def months_between(start_year: int, start_month: int, end_year: int, end_month: int) -> int:
    """Number of months from start to end (negative when end is earlier)."""
    return (end_year - start_year) * 12 + (end_month - start_month)


def get_next_available_month(today: Optional[date] = None) -> Tuple[int, int]:
    """
    Get the (year, month) open for voting.

    The current month while it still has a Sunday after today, otherwise the next month.
    """
    today = today or utcnow().date()
    future_sundays = [
        day for day in get_sundays_in_month(today.year, today.month) if day > today.day
    ]
    if future_sundays:
        return today.year, today.month
    return add_months(today.year, today.month, 1)


def get_quarter(value: date) -> str:
    """Quarter key for a date, e.g. "2024-Q1" for January through March."""
    return f"{value.year}-Q{(value.month - 1) // 3 + 1}"


def parse_quarter(quarter: str) -> Tuple[int, int]:
    """
    Parse a "YYYY-Qn" key into (year, quarter number).

    Raises:
        ValueError: If the key is malformed
    """
    match = QUARTER_PATTERN.match(quarter or "")
    if not match:
        raise ValueError(f"Invalid quarter '{quarter}'. Expected format YYYY-Qn")
    return int(match.group(1)), int(match.group(2))


def quarter_bounds(quarter: str) -> Tuple[date, date]:
    """First and last day of a quarter."""
    year, number = parse_quarter(quarter)
    first_month = (number - 1) * 3 + 1
    start = date(year, first_month, 1)
    end_year, end_month = add_months(year, first_month, 3)
    return start, date(end_year, end_month, 1) - timedelta(days=1)


def parse_time(value: str) -> Tuple[int, int]:
    """
    Parse an "HH:MM" string.

    Raises:
        ValueError: If the value is not a valid 24h time
    """
    match = re.match(r"^(\d{1,2}):(\d{2})$", value or "")
    if not match:
        raise ValueError(f"Invalid time '{value}'. Expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time '{value}'. Expected HH:MM")
    return hours, minutes
