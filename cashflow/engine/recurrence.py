"""
Recurrence Engine

Expands a recurring master into dated transaction drafts, and decides when
an open-ended master needs its generated horizon rolled forward.

DESIGN DECISION: An open-ended rule is never expanded without a bound.
Every expansion covers an explicit window (end date, or start + N months);
auto-extension is the only way the horizon moves, one bounded window at a
time, starting strictly after the latest instance already generated. That
keeps extensions gap-free and non-overlapping.

Day-of-period semantics: 31, or any day past the end of a shorter month,
means "last day of the month". The clamp is re-applied on every step, so
a rule for the 31st lands on Feb 29, Mar 31, Apr 30, ...

All functions here are pure: same inputs, same outputs, no clock reads.
"""

from datetime import date
from decimal import Decimal
from typing import Iterator, Optional, Sequence, Union

from cashflow.engine.dates import (
    DateLike,
    add_months,
    add_years,
    days_in_month,
    last_day_of_month,
    set_month,
    to_date,
)
from cashflow.engine.settlement import settlement_date_for_client
from cashflow.models.client import Client, find_client
from cashflow.models.recurring import Frequency, InvalidRecurrenceError, RecurringMaster
from cashflow.models.transaction import DEFAULT_TAX_RATE, Transaction


DEFAULT_WINDOW_MONTHS = 12
DEFAULT_THRESHOLD_MONTHS = 6
DEFAULT_EXTENSION_MONTHS = 12


def _coerce_frequency(frequency: Union[Frequency, str]) -> Frequency:
    try:
        return Frequency(frequency)
    except ValueError:
        raise InvalidRecurrenceError(
            f"Unsupported frequency: {frequency!r}. Allowed: monthly, yearly"
        )


def _check_day(day: int) -> None:
    if isinstance(day, bool) or not isinstance(day, int) or day < 1:
        raise InvalidRecurrenceError(f"Day of period must be a positive integer, got {day!r}")


def _check_month(month_of_year: Optional[int]) -> None:
    if month_of_year is None:
        return
    if isinstance(month_of_year, bool) or not isinstance(month_of_year, int) \
            or not 1 <= month_of_year <= 12:
        raise InvalidRecurrenceError(f"Month of year must be 1-12, got {month_of_year!r}")


def set_day_with_month_end_fallback(d: DateLike, day: int) -> date:
    """
    Set the day of month, snapping to the month's last day when needed.

    day >= 31, or a day the month does not have, gives the last day.
    """
    _check_day(day)
    d = to_date(d)
    max_day = days_in_month(d)
    if day >= 31 or day > max_day:
        return last_day_of_month(d)
    return d.replace(day=day)


def calculate_next_occurrence(
    current_date: DateLike,
    frequency: Union[Frequency, str],
    day_of_period: int,
    month_of_year: Optional[int] = None,
) -> date:
    """Advance one period, then re-apply the month and day rules."""
    frequency = _coerce_frequency(frequency)
    _check_month(month_of_year)
    current = to_date(current_date)

    if frequency == Frequency.MONTHLY:
        next_date = add_months(current, 1)
    else:
        next_date = add_years(current, 1)
        if month_of_year is not None:
            next_date = set_month(next_date, month_of_year)

    return set_day_with_month_end_fallback(next_date, day_of_period)


def iter_occurrence_dates(
    start_date: DateLike,
    end_date: Optional[DateLike],
    frequency: Union[Frequency, str],
    day_of_period: int,
    month_of_year: Optional[int] = None,
    max_months: int = DEFAULT_WINDOW_MONTHS,
) -> Iterator[date]:
    """
    Lazily yield occurrence dates inside the window, ascending.

    The window ends at end_date, or at start_date + max_months when the
    rule is open-ended. The iterator is always finite.
    """
    frequency = _coerce_frequency(frequency)
    _check_day(day_of_period)
    _check_month(month_of_year)
    if frequency == Frequency.YEARLY and month_of_year is None:
        raise InvalidRecurrenceError("Yearly rules need a month_of_year")
    if isinstance(max_months, bool) or not isinstance(max_months, int) or max_months < 1:
        raise InvalidRecurrenceError(f"max_months must be a positive integer, got {max_months!r}")

    start = to_date(start_date)
    window_end = to_date(end_date) if end_date is not None else add_months(start, max_months)

    current = set_day_with_month_end_fallback(start, day_of_period)
    if frequency == Frequency.YEARLY:
        current = set_month(current, month_of_year)
        current = set_day_with_month_end_fallback(current, day_of_period)

    # Each step moves forward by at least 28 days, so this terminates.
    while current < start:
        current = calculate_next_occurrence(current, frequency, day_of_period, month_of_year)

    while current <= window_end:
        yield current
        current = calculate_next_occurrence(current, frequency, day_of_period, month_of_year)


def generate_occurrence_dates(
    start_date: DateLike,
    end_date: Optional[DateLike],
    frequency: Union[Frequency, str],
    day_of_period: int,
    month_of_year: Optional[int] = None,
    max_months: int = DEFAULT_WINDOW_MONTHS,
) -> list[date]:
    """
    All occurrence dates inside the window, ascending and unique.

    Raises:
        InvalidRecurrenceError: For an unknown frequency, a non-positive
            day or window, a month outside 1-12, or a yearly
            rule without a month
    """
    return list(iter_occurrence_dates(
        start_date,
        end_date,
        frequency,
        day_of_period,
        month_of_year,
        max_months,
    ))


def _materialize(
    master: RecurringMaster,
    occurrence: date,
    client: Optional[Client],
    owner_id: str,
    tax_rate: Decimal,
) -> Transaction:
    settlement = settlement_date_for_client(occurrence, client) if client else occurrence
    return Transaction(
        owner_id=owner_id,
        type=master.type,
        amount=master.base_amount,
        tax_rate=tax_rate,
        transaction_date=occurrence,
        settlement_date=settlement,
        is_settled=False,
        client_id=master.client_id,
        category_id=master.category_id,
        memo=master.memo or master.title,
        recurring_master_id=master.id,
        recurring_instance_date=occurrence,
        is_detached=False,
    )


def _materialize_all(
    master: RecurringMaster,
    occurrences: list[date],
    clients: Sequence[Client],
    owner_id: str,
    tax_rate: Decimal,
) -> list[Transaction]:
    client = find_client(master.client_id, clients)
    return [
        _materialize(master, occurrence, client, owner_id, tax_rate)
        for occurrence in occurrences
    ]


def generate_transactions_from_master(
    master: RecurringMaster,
    clients: Sequence[Client],
    owner_id: str,
    max_months: int = DEFAULT_WINDOW_MONTHS,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> list[Transaction]:
    """
    Draft one transaction per occurrence of the master.

    Settlement dates come from the master's client terms when the client
    is known, otherwise they equal the occurrence date. Drafts carry no id.
    Returns an empty list for a master without a start date.
    """
    if master.start_date is None:
        return []

    occurrences = generate_occurrence_dates(
        master.start_date,
        master.end_date,
        master.frequency,
        master.day_of_period,
        master.month_of_year,
        max_months,
    )
    return _materialize_all(master, occurrences, clients, owner_id, tax_rate)


def _related(master: RecurringMaster, transactions: Sequence[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t.recurring_master_id == master.id]


def latest_instance_date(transactions: Sequence[Transaction]) -> Optional[date]:
    """Latest originally-scheduled date among the given instances."""
    dates = [t.recurring_instance_date for t in transactions if t.recurring_instance_date]
    return max(dates) if dates else None


def needs_auto_extension(
    master: RecurringMaster,
    transactions: Sequence[Transaction],
    threshold_months: int = DEFAULT_THRESHOLD_MONTHS,
    *,
    now: DateLike,
) -> bool:
    """
    Whether an open-ended master's generated horizon is running out.

    Only active, open-ended masters qualify. A master with no instances
    needs generating right away; otherwise it needs extending when its
    latest instance falls before now + threshold_months.
    """
    if not master.is_open_ended or not master.is_active:
        return False

    latest = latest_instance_date(_related(master, transactions))
    if latest is None:
        return True

    return latest < add_months(to_date(now), threshold_months)


def generate_extension_transactions(
    master: RecurringMaster,
    existing_transactions: Sequence[Transaction],
    clients: Sequence[Client],
    owner_id: str,
    extension_months: int = DEFAULT_EXTENSION_MONTHS,
    tax_rate: Decimal = DEFAULT_TAX_RATE,
) -> list[Transaction]:
    """
    Draft the next window of instances after the latest existing one.

    With no existing instances this is generate_transactions_from_master.
    Otherwise the window starts at the first occurrence strictly after the
    latest instance and spans extension_months (capped by the master's end
    date, if it has one).
    """
    latest = latest_instance_date(_related(master, existing_transactions))
    if latest is None:
        return generate_transactions_from_master(master, clients, owner_id, tax_rate=tax_rate)

    extension_start = calculate_next_occurrence(
        latest,
        master.frequency,
        master.day_of_period,
        master.month_of_year,
    )
    extension_end = add_months(extension_start, extension_months)
    if master.end_date is not None:
        extension_end = min(extension_end, master.end_date)

    occurrences = generate_occurrence_dates(
        extension_start,
        extension_end,
        master.frequency,
        master.day_of_period,
        master.month_of_year,
        extension_months,
    )
    return _materialize_all(master, occurrences, clients, owner_id, tax_rate)
