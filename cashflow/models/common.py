"""
Shared field types for the planner models.

DESIGN DECISION: Money is Decimal end to end. Binary floats are rejected
at the model boundary instead of being silently rounded, and persisted
amounts are decimal strings.

Calendar fields are plain dates. A datetime handed to one of them is
normalized to its calendar day so that the time of day never affects
date comparisons.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer


def to_calendar_date(value: Any) -> Any:
    """Drop the time component of datetimes; leave everything else to pydantic."""
    if isinstance(value, datetime):
        return value.date()
    return value


def reject_float(value: Any) -> Any:
    """Refuse binary floats for money fields."""
    if isinstance(value, float):
        raise ValueError(
            "Amounts must be given as decimal strings or Decimal, not float"
        )
    return value


CalendarDate = Annotated[date, BeforeValidator(to_calendar_date)]

Money = Annotated[
    Decimal,
    BeforeValidator(reject_float),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]


class TransactionType(str, Enum):
    """Direction of a cash movement."""
    INCOME = "income"
    EXPENSE = "expense"
