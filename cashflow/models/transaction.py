"""
Transaction Model

A transaction is one expected (or reconciled) cash movement.

Lifecycle as seen by automation:
- editable: the default; generated fields may be re-derived
- settled: reconciled against the bank, immutable to automation
- detached: manually diverged from its recurring rule; automation leaves
  it alone, a human may still edit it

Both terminal states are reached only by explicit user action.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from cashflow.models.common import CalendarDate, Money, TransactionType


DEFAULT_TAX_RATE = Decimal("0.1")


class Transaction(BaseModel):
    """
    A single income or expense.

    Drafts produced by the engine have no id; storage assigns one on commit.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: Optional[str] = None
    owner_id: Optional[str] = None

    type: TransactionType
    amount: Money = Field(
        ...,
        description="Amount as a decimal, never a binary float"
    )
    tax_rate: Money = Field(
        default=DEFAULT_TAX_RATE,
        ge=0,
        description="Tax rate applied to the amount"
    )

    # Dates
    transaction_date: Optional[CalendarDate] = Field(
        default=None,
        description="Accrual date"
    )
    settlement_date: Optional[CalendarDate] = Field(
        default=None,
        description="Date the money is expected to move (derived)"
    )

    # Reconciliation
    is_settled: bool = False

    # Relations
    client_id: Optional[str] = None
    category_id: Optional[str] = None
    memo: Optional[str] = Field(default=None, max_length=500)

    # Recurring series membership
    recurring_master_id: Optional[str] = None
    recurring_instance_date: Optional[CalendarDate] = Field(
        default=None,
        description="Originally scheduled date, kept even after edits"
    )
    is_detached: bool = False

    # Project linkage
    project_id: Optional[str] = None
    is_estimate: bool = False

    # Timestamps (stamped by storage)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_recurring_link(self) -> 'Transaction':
        """A recurring instance must remember its scheduled date."""
        if self.recurring_master_id and self.recurring_instance_date is None:
            raise ValueError(
                "recurring_instance_date is required when recurring_master_id is set"
            )
        return self

    @property
    def is_locked(self) -> bool:
        """True when automation must not rewrite this record."""
        return self.is_settled or self.is_detached

    def label(self) -> str:
        """Short human-readable name for warnings."""
        return self.memo or "Expected payment"
