"""Date manipulation utilities"""

import calendar
from datetime import date
from typing import Optional, Union


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month (Jan 31 + 1 -> Feb 28/29)"""
    year = from_date.year + (from_date.month - 1 + months) // 12
    month = (from_date.month - 1 + months) % 12 + 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def first_of_next_month(from_date: date) -> date:
    """First day of the month after from_date"""
    return add_months(from_date.replace(day=1), 1)


def parse_iso_date(value: Union[date, str, None]) -> Optional[date]:
    """Parse a YYYY-MM-DD value, returning None when missing or malformed"""
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        return None
