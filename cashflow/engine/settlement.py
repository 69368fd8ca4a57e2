"""
Settlement Date Calculator

Turns the date a transaction accrues plus a client's payment terms into
the date the money is expected to move.

Payment terms are the usual closing-cycle form:
"close on the 25th, pay on the 10th of the following month".

1. Resolve this month's closing date (month end resolves to the true
   last day).
2. A transaction dated after the closing date belongs to next month's
   cycle; a transaction ON the closing date still belongs to this one.
3. Add the payment month offset to the closing date.
4. Resolve the payment day in that month, clamping to the month length.

Pure and deterministic: no I/O, no clock.
"""

from datetime import date
from typing import Union

from cashflow.engine.dates import (
    DateLike,
    add_months,
    days_in_month,
    last_day_of_month,
    to_date,
)
from cashflow.models.client import (
    BillingDay,
    Client,
    coerce_payment_month_offset,
)


DaySpec = Union[BillingDay, int]


def calculate_settlement_date(
    transaction_date: DateLike,
    closing_day: DaySpec,
    payment_month_offset: int,
    payment_day: DaySpec,
) -> date:
    """
    Calculate the settlement (payment) date for a transaction.

    Args:
        transaction_date: Accrual date; any time component is ignored
        closing_day: BillingDay or code (1-28, 99 = month end)
        payment_month_offset: Months after closing (0 = same month)
        payment_day: BillingDay or code (1-28, 99 = month end)

    Returns:
        The settlement date

    Raises:
        InvalidPaymentTermsError: If any of the terms is out of range
    """
    closing = BillingDay.coerce(closing_day)
    payment = BillingDay.coerce(payment_day)
    offset = coerce_payment_month_offset(payment_month_offset)
    tx_date = to_date(transaction_date)

    closing_date = tx_date.replace(day=closing.resolve(days_in_month(tx_date)))

    if tx_date > closing_date:
        closing_date = add_months(closing_date, 1)
        if closing.is_month_end:
            # Feb 29 + 1 month is Mar 29; month end must be Mar 31
            closing_date = last_day_of_month(closing_date)

    payment_month = add_months(closing_date, offset)
    return payment_month.replace(day=payment.resolve(days_in_month(payment_month)))


def settlement_date_for_client(transaction_date: DateLike, client: Client) -> date:
    """calculate_settlement_date with the terms taken from a client."""
    return calculate_settlement_date(
        transaction_date,
        client.closing_day,
        client.payment_month_offset,
        client.payment_day,
    )


_OFFSET_LABELS = {
    0: "of the same month",
    1: "of the following month",
    2: "two months later",
    3: "three months later",
}


def _ordinal(n: int) -> str:
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _day_phrase(day: BillingDay) -> str:
    return "at month-end" if day.is_month_end else f"on the {_ordinal(day.day)}"


def format_payment_cycle(
    closing_day: DaySpec,
    payment_month_offset: int,
    payment_day: DaySpec,
) -> str:
    """
    Describe payment terms for display.

    e.g. "Closes on the 25th, paid on the 10th of the following month"
    """
    closing = BillingDay.coerce(closing_day)
    payment = BillingDay.coerce(payment_day)
    offset = coerce_payment_month_offset(payment_month_offset)

    month_str = _OFFSET_LABELS.get(offset, f"{offset} months later")
    return f"Closes {_day_phrase(closing)}, paid {_day_phrase(payment)} {month_str}"
