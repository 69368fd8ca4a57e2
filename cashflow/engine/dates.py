"""
Calendar arithmetic shared by the engine.

Month arithmetic clamps to the end of shorter months
(Jan 31 + 1 month = Feb 28/29), which is what relativedelta does.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import Union

from dateutil.relativedelta import relativedelta


DateLike = Union[date, datetime]


def to_date(value: DateLike) -> date:
    """Normalize to a calendar date (start of day)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")


def days_in_month(d: date) -> int:
    return calendar.monthrange(d.year, d.month)[1]


def last_day_of_month(d: date) -> date:
    return d.replace(day=days_in_month(d))


def add_months(d: date, months: int) -> date:
    return d + relativedelta(months=months)


def add_years(d: date, years: int) -> date:
    return d + relativedelta(years=years)


def set_month(d: date, month: int) -> date:
    """Move to another month of the same year, clamping the day."""
    return d + relativedelta(month=month)


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Signed whole days from start to end (positive = later)."""
    return (to_date(end) - to_date(start)).days
