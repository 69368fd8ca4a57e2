"""
Client Models

A client carries the payment terms every settlement date is derived from:
a closing day, a number of months until payment, and a payment day.

DESIGN DECISION: Closing and payment days are a tagged value - either a
concrete day of month (1-28) or "month end" - rather than a bare integer
with a magic 99. Storage still uses the integer code (99 = month end), so
the models accept and emit the code at the boundary.
"""

from datetime import datetime
from typing import Any, Optional, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


MONTH_END_CODE = 99
MAX_CONCRETE_DAY = 28


class InvalidPaymentTermsError(ValueError):
    """Closing day, payment day or payment month offset out of range."""
    pass


class BillingDay(BaseModel):
    """
    A day within a month used by payment terms.

    Either a concrete day (1-28, valid in every month) or the last
    calendar day of whatever month it is resolved against.
    """
    model_config = ConfigDict(frozen=True)

    day: Optional[int] = Field(
        default=None,
        ge=1,
        le=MAX_CONCRETE_DAY,
        description="Concrete day of month; None means month end"
    )

    @classmethod
    def concrete(cls, day: int) -> 'BillingDay':
        if isinstance(day, bool) or not isinstance(day, int):
            raise InvalidPaymentTermsError(f"Day must be an integer, got {day!r}")
        if not 1 <= day <= MAX_CONCRETE_DAY:
            raise InvalidPaymentTermsError(
                f"Day must be between 1 and {MAX_CONCRETE_DAY} "
                f"or {MONTH_END_CODE} (month end), got {day}"
            )
        return cls(day=day)

    @classmethod
    def month_end(cls) -> 'BillingDay':
        return cls(day=None)

    @classmethod
    def coerce(cls, value: Any) -> 'BillingDay':
        """Accept a BillingDay or its persisted integer code."""
        if isinstance(value, BillingDay):
            return value
        if isinstance(value, int) and not isinstance(value, bool) and value == MONTH_END_CODE:
            return cls.month_end()
        return cls.concrete(value)

    @property
    def is_month_end(self) -> bool:
        return self.day is None

    @property
    def code(self) -> int:
        """Integer code as persisted (99 = month end)."""
        return MONTH_END_CODE if self.day is None else self.day

    def resolve(self, days_in_month: int) -> int:
        """Concrete day for a month of the given length."""
        if self.day is None:
            return days_in_month
        return min(self.day, days_in_month)

    def __str__(self) -> str:
        return "month-end" if self.day is None else str(self.day)


def coerce_payment_month_offset(value: Any) -> int:
    """Validate the months-after-closing offset."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPaymentTermsError(
            f"Payment month offset must be an integer, got {value!r}"
        )
    if value < 0:
        raise InvalidPaymentTermsError(
            f"Payment month offset cannot be negative, got {value}"
        )
    return value


class Client(BaseModel):
    """A counterparty and its payment terms."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    owner_id: Optional[str] = None
    name: str = Field(
        default="",
        max_length=200,
        description="Display name"
    )
    closing_day: BillingDay = Field(
        ...,
        description="Day the accounting period closes (99 = month end)"
    )
    payment_month_offset: int = Field(
        default=1,
        ge=0,
        description="Months after closing until payment (0 = same month)"
    )
    payment_day: BillingDay = Field(
        ...,
        description="Day of the payment month (99 = month end)"
    )
    sort_order: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator('closing_day', 'payment_day', mode='before')
    @classmethod
    def parse_billing_day(cls, v: Any) -> BillingDay:
        if isinstance(v, dict):
            return BillingDay(**v)
        return BillingDay.coerce(v)

    @field_serializer('closing_day', 'payment_day')
    def serialize_billing_day(self, v: BillingDay) -> int:
        return v.code


def find_client(client_id: Optional[str], clients: Sequence[Client]) -> Optional[Client]:
    """Look up a client by id; a missing id never matches."""
    if not client_id:
        return None
    return next((c for c in clients if c.id == client_id), None)
