"""
Read-only financial views over transactions.

Project profit and loss, project estimates, and placing transactions on
the calendar by view mode. Nothing here writes; the view mode and date
range are always passed in by the caller.
"""

from datetime import date
from typing import Optional, Sequence

from cashflow.engine.dates import DateLike, add_days, to_date
from cashflow.engine.money import ZERO, calculate_profit_margin, to_decimal, total
from cashflow.models.common import TransactionType
from cashflow.models.financials import (
    CalendarEntry,
    DailyCashFlow,
    HealthStatus,
    ProjectFinancials,
    ViewMode,
)
from cashflow.models.project import Project
from cashflow.models.transaction import Transaction


VIRTUAL_ID_PREFIX = "project-virtual-"

HEALTHY_MARGIN = 30
WARNING_MARGIN = 10


def calculate_project_financials(
    project: Optional[Project],
    transactions: Sequence[Transaction],
) -> ProjectFinancials:
    """
    Profit and loss of one project from all transactions linked to it.

    Returns an empty result for a missing project.
    """
    if project is None:
        return ProjectFinancials()

    linked = [t for t in transactions if t.project_id == project.id]
    income = [t for t in linked if t.type == TransactionType.INCOME]
    expense = [t for t in linked if t.type == TransactionType.EXPENSE]

    total_income = total(t.amount for t in income)
    total_expense = total(t.amount for t in expense)
    gross_profit = total_income - total_expense

    return ProjectFinancials(
        total_income=total_income,
        total_expense=total_expense,
        gross_profit=gross_profit,
        profit_margin=calculate_profit_margin(gross_profit, total_income),
        income_transactions=income,
        expense_transactions=expense,
        transaction_count=len(linked),
        is_deficit=gross_profit < 0,
    )


def get_health_status(profit_margin: float) -> HealthStatus:
    if profit_margin >= HEALTHY_MARGIN:
        return HealthStatus.HEALTHY
    if profit_margin >= WARNING_MARGIN:
        return HealthStatus.WARNING
    return HealthStatus.DANGER


def convert_project_to_transaction(
    project: Project,
    fallback_date: Optional[DateLike] = None,
) -> Transaction:
    """
    Present a project as an expected income on the calendar.

    The result is a synthetic estimate; it is never persisted. It accrues
    on the project's end date (or start date, or fallback_date) and has
    no settlement date yet.
    """
    if project.end_date:
        accrual = project.end_date
    elif project.start_date:
        accrual = project.start_date
    else:
        accrual = to_date(fallback_date) if fallback_date is not None else None

    return Transaction(
        id=f"{VIRTUAL_ID_PREFIX}{project.id}",
        owner_id=project.owner_id,
        type=TransactionType.INCOME,
        amount=project.estimated_amount,
        transaction_date=accrual,
        settlement_date=None,
        is_settled=False,
        client_id=project.client_id,
        memo=project.title,
        project_id=project.id,
        is_estimate=True,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def get_display_date(transaction: Transaction, view_mode: ViewMode) -> Optional[date]:
    """
    The date a transaction is shown on.

    Accrual and project views use the transaction date. The cash view uses
    the settlement date and falls back to the transaction date.
    """
    if view_mode in (ViewMode.ACCRUAL, ViewMode.PROJECT):
        return transaction.transaction_date
    return transaction.settlement_date or transaction.transaction_date


def map_transactions_for_calendar(
    transactions: Sequence[Transaction],
    view_mode: ViewMode,
) -> list[CalendarEntry]:
    entries = []
    for tx in transactions:
        display_date = get_display_date(tx, view_mode)
        if display_date is None:
            continue
        entries.append(CalendarEntry(date=display_date, type=tx.type.value, amount=tx.amount))
    return entries


def filter_transactions_by_date(
    transactions: Sequence[Transaction],
    target: DateLike,
    view_mode: ViewMode,
) -> list[Transaction]:
    """Transactions shown on the given calendar day."""
    day = to_date(target)
    return [t for t in transactions if get_display_date(t, view_mode) == day]


def summarize_cash_flow(
    transactions: Sequence[Transaction],
    view_mode: ViewMode,
    start: DateLike,
    end: DateLike,
    opening_balance=ZERO,
) -> list[DailyCashFlow]:
    """
    Day-by-day totals from start to end inclusive, with a running balance.

    Transactions displayed outside the range are ignored.

    Raises:
        ValueError: If end is before start
    """
    first, last = to_date(start), to_date(end)
    if last < first:
        raise ValueError("end must not be before start")

    by_day: dict[date, list[Transaction]] = {}
    for tx in transactions:
        display_date = get_display_date(tx, view_mode)
        if display_date is not None and first <= display_date <= last:
            by_day.setdefault(display_date, []).append(tx)

    days = []
    balance = to_decimal(opening_balance)
    current = first
    while current <= last:
        day_txs = by_day.get(current, [])
        income = total(t.amount for t in day_txs if t.type == TransactionType.INCOME)
        expense = total(t.amount for t in day_txs if t.type == TransactionType.EXPENSE)
        net = income - expense
        balance += net
        days.append(DailyCashFlow(
            date=current,
            income=income,
            expense=expense,
            net=net,
            balance=balance,
        ))
        current = add_days(current, 1)

    return days
