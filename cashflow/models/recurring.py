"""
Recurring Master Model

A recurring master is the template a series of transactions is generated
from. Deactivating a master freezes auto-extension but keeps the
instances already generated.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from cashflow.models.common import CalendarDate, Money, TransactionType


class InvalidRecurrenceError(ValueError):
    """Frequency, day, month or window that cannot produce occurrences."""
    pass


class Frequency(str, Enum):
    """How often a recurring master repeats."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurringMaster(BaseModel):
    """
    Template for a repeating transaction.

    day_of_period 31 (or any day past the end of a short month) means
    "last day of the month".
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    owner_id: Optional[str] = None

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    base_amount: Money
    type: TransactionType

    client_id: Optional[str] = None
    category_id: Optional[str] = None
    memo: Optional[str] = Field(default=None, max_length=500)

    # Schedule
    frequency: Frequency
    day_of_period: int = Field(..., ge=1, le=31)
    month_of_year: Optional[int] = Field(
        default=None,
        ge=1,
        le=12,
        description="Month for yearly rules"
    )
    start_date: Optional[CalendarDate] = None
    end_date: Optional[CalendarDate] = Field(
        default=None,
        description="None means open-ended"
    )
    is_active: bool = True

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_schedule(self) -> 'RecurringMaster':
        if self.frequency == Frequency.YEARLY and self.month_of_year is None:
            raise ValueError("month_of_year is required for yearly rules")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self

    @property
    def is_open_ended(self) -> bool:
        return self.end_date is None
