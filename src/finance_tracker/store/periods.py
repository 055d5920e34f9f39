"""Calendar helpers for filtering transactions by month and year.

Transaction dates are stored as ``YYYY-MM-DD`` strings. Anything after the
first ten characters (e.g. a time component) is ignored.
"""
from calendar import monthrange
from datetime import date
from typing import Optional, Tuple

MonthKey = Tuple[int, int] # (year, month 1-12)


def parse_date(value: str) -> Optional[date]:
    """Parse a stored date string, returning None when it isn't a calendar date"""
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def month_key(day: date) -> MonthKey:
    return (day.year, day.month)


def previous_month(day: date) -> MonthKey:
    """The month before ``day``'s month; January wraps to December of the prior year"""
    if day.month == 1:
        return (day.year - 1, 12)
    return (day.year, day.month - 1)


def days_in_month(year: int, month: int) -> int:
    _, last_day = monthrange(year, month)
    return last_day


def shift_months(day: date, months: int) -> date:
    """
    Move ``day`` by a number of months, clamping the day of month.

    Example:
        shift_months(date(2025, 3, 31), -1) -> date(2025, 2, 28)
    """
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, days_in_month(year, month)))
