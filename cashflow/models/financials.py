"""
Financial Summary Models

Read-only aggregates computed from transactions: project profit and loss,
and the day-by-day cash projection shown on the calendar.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from cashflow.models.transaction import Transaction


class ViewMode(str, Enum):
    """
    Which date a transaction is placed on.

    accrual and project use the transaction date; cash uses the
    settlement date, falling back to the transaction date.
    """
    ACCRUAL = "accrual"
    CASH = "cash"
    PROJECT = "project"


class HealthStatus(str, Enum):
    """Project health by gross margin."""
    HEALTHY = "healthy"    # >= 30%
    WARNING = "warning"    # 10-30%
    DANGER = "danger"      # < 10%


class ProjectFinancials(BaseModel):
    """Profit and loss of one project."""

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    gross_profit: Decimal = Decimal("0")
    profit_margin: float = Field(
        default=0.0,
        description="Gross margin in percent, one decimal place"
    )
    income_transactions: list[Transaction] = Field(default_factory=list)
    expense_transactions: list[Transaction] = Field(default_factory=list)
    transaction_count: int = 0
    is_deficit: bool = False


class CalendarEntry(BaseModel):
    """One transaction placed on its display date."""

    date: dt.date
    type: str
    amount: Decimal


class DailyCashFlow(BaseModel):
    """Totals for one calendar day."""

    date: dt.date
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    net: Decimal = Decimal("0")
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Running balance at the end of the day"
    )
