"""
Tests for occurrence generation, materialization and auto-extension.
"""

import pytest
from datetime import date
from decimal import Decimal

from cashflow.engine.dates import days_in_month
from cashflow.engine.recurrence import (
    calculate_next_occurrence,
    generate_extension_transactions,
    generate_occurrence_dates,
    generate_transactions_from_master,
    iter_occurrence_dates,
    latest_instance_date,
    needs_auto_extension,
    set_day_with_month_end_fallback,
)
from cashflow.models import (
    Frequency,
    InvalidRecurrenceError,
    RecurringMaster,
    Transaction,
    TransactionType,
)


def instance(master_id, when):
    return Transaction(
        owner_id="owner-1",
        type=TransactionType.EXPENSE,
        amount=Decimal("1000"),
        transaction_date=when,
        settlement_date=when,
        recurring_master_id=master_id,
        recurring_instance_date=when,
    )


class TestMonthEndFallback:
    """Tests for set_day_with_month_end_fallback."""

    def test_exact_day(self):
        assert set_day_with_month_end_fallback(date(2024, 4, 3), 15) == date(2024, 4, 15)

    def test_day_31_is_last_day(self):
        assert set_day_with_month_end_fallback(date(2024, 4, 3), 31) == date(2024, 4, 30)

    def test_day_past_month_length(self):
        assert set_day_with_month_end_fallback(date(2023, 2, 1), 30) == date(2023, 2, 28)
        assert set_day_with_month_end_fallback(date(2024, 2, 1), 30) == date(2024, 2, 29)

    def test_day_29_in_leap_february(self):
        assert set_day_with_month_end_fallback(date(2024, 2, 1), 29) == date(2024, 2, 29)

    def test_rejects_non_positive_day(self):
        with pytest.raises(InvalidRecurrenceError):
            set_day_with_month_end_fallback(date(2024, 1, 1), 0)


class TestNextOccurrence:
    """Tests for calculate_next_occurrence."""

    def test_monthly_clamps_into_short_month(self):
        assert calculate_next_occurrence(date(2024, 1, 31), Frequency.MONTHLY, 31) == date(2024, 2, 29)

    def test_monthly_recovers_after_short_month(self):
        """The day rule is re-applied, so Feb 29 -> Mar 31."""
        assert calculate_next_occurrence(date(2024, 2, 29), Frequency.MONTHLY, 31) == date(2024, 3, 31)

    def test_yearly_from_leap_day(self):
        assert calculate_next_occurrence(date(2024, 2, 29), Frequency.YEARLY, 29, 2) == date(2025, 2, 28)

    def test_yearly_sets_month(self):
        assert calculate_next_occurrence(date(2024, 3, 15), "yearly", 15, 3) == date(2025, 3, 15)

    def test_accepts_string_frequency(self):
        assert calculate_next_occurrence(date(2024, 1, 10), "monthly", 10) == date(2024, 2, 10)

    def test_rejects_unknown_frequency(self):
        with pytest.raises(InvalidRecurrenceError):
            calculate_next_occurrence(date(2024, 1, 10), "weekly", 10)


class TestGenerateOccurrenceDates:
    """Tests for generate_occurrence_dates."""

    def test_day_31_across_short_months(self):
        """Jan 31, Feb 29 (leap), Mar 31, Apr 30."""
        dates = generate_occurrence_dates(date(2024, 1, 31), None, Frequency.MONTHLY, 31)
        assert dates[:4] == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
            date(2024, 4, 30),
        ]

    def test_open_ended_window_is_bounded(self):
        """12 months from Jan 31 ends on Jan 31 next year, inclusive."""
        dates = generate_occurrence_dates(date(2024, 1, 31), None, Frequency.MONTHLY, 31, max_months=12)
        assert len(dates) == 13
        assert dates[-1] == date(2025, 1, 31)

    def test_end_date_bounds_window(self):
        dates = generate_occurrence_dates(
            date(2024, 1, 1), date(2024, 3, 31), Frequency.MONTHLY, 15
        )
        assert dates == [date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15)]

    def test_end_date_is_inclusive(self):
        dates = generate_occurrence_dates(
            date(2024, 1, 1), date(2024, 2, 15), Frequency.MONTHLY, 15
        )
        assert dates[-1] == date(2024, 2, 15)

    def test_first_candidate_before_start_moves_forward(self):
        """Starting on the 20th with day 10, the first occurrence is next month."""
        dates = generate_occurrence_dates(date(2024, 1, 20), date(2024, 4, 30), Frequency.MONTHLY, 10)
        assert dates[0] == date(2024, 2, 10)
        assert all(d >= date(2024, 1, 20) for d in dates)

    def test_yearly_month_already_passed(self):
        """A March rule starting in June begins the following March."""
        dates = generate_occurrence_dates(
            date(2024, 6, 1), date(2027, 12, 31), Frequency.YEARLY, 15, month_of_year=3
        )
        assert dates == [date(2025, 3, 15), date(2026, 3, 15), date(2027, 3, 15)]

    def test_yearly_later_in_same_year(self):
        dates = generate_occurrence_dates(
            date(2024, 1, 1), None, Frequency.YEARLY, 31, month_of_year=2, max_months=24
        )
        assert dates == [date(2024, 2, 29), date(2025, 2, 28)]

    def test_end_before_start_is_empty(self):
        dates = generate_occurrence_dates(
            date(2024, 5, 1), date(2024, 4, 1), Frequency.MONTHLY, 10
        )
        assert dates == []

    def test_strictly_ascending_and_clamped(self):
        """Ascending, unique, and each day is the rule day or the month's last."""
        for day in (1, 15, 28, 29, 30, 31):
            dates = generate_occurrence_dates(date(2023, 1, 1), None, Frequency.MONTHLY, day, max_months=36)
            assert dates == sorted(set(dates))
            for d in dates:
                assert d.day == min(day, days_in_month(d))

    def test_iterator_is_lazy_and_finite(self):
        iterator = iter_occurrence_dates(date(2024, 1, 1), None, Frequency.MONTHLY, 1, max_months=2)
        assert next(iterator) == date(2024, 1, 1)
        assert list(iterator) == [date(2024, 2, 1), date(2024, 3, 1)]

    @pytest.mark.parametrize("kwargs", [
        dict(frequency="weekly", day_of_period=1),
        dict(frequency=Frequency.MONTHLY, day_of_period=0),
        dict(frequency=Frequency.YEARLY, day_of_period=1),
        dict(frequency=Frequency.YEARLY, day_of_period=1, month_of_year=13),
        dict(frequency=Frequency.MONTHLY, day_of_period=1, max_months=0),
    ])
    def test_rejects_invalid_rules(self, kwargs):
        with pytest.raises(InvalidRecurrenceError):
            generate_occurrence_dates(date(2024, 1, 1), None, **kwargs)


class TestMaterializer:
    """Tests for generate_transactions_from_master."""

    def test_without_client_settles_on_occurrence(self, monthly_master, owner_id):
        drafts = generate_transactions_from_master(monthly_master, [], owner_id)
        first = drafts[0]
        assert first.transaction_date == date(2024, 1, 31)
        assert first.settlement_date == date(2024, 1, 31)
        assert first.recurring_master_id == "master-1"
        assert first.recurring_instance_date == date(2024, 1, 31)
        assert first.is_detached is False
        assert first.is_settled is False
        assert first.id is None

    def test_with_client_uses_payment_terms(self, monthly_master, client_25_10, owner_id):
        master = monthly_master.model_copy(update={"client_id": client_25_10.id})
        drafts = generate_transactions_from_master(master, [client_25_10], owner_id)
        # Jan 31 is after the 25th close -> Feb 25 close -> paid Mar 10
        assert drafts[0].settlement_date == date(2024, 3, 10)
        assert drafts[0].client_id == client_25_10.id

    def test_unknown_client_falls_back_to_occurrence(self, monthly_master, owner_id):
        master = monthly_master.model_copy(update={"client_id": "missing"})
        drafts = generate_transactions_from_master(master, [], owner_id)
        assert drafts[0].settlement_date == drafts[0].transaction_date

    def test_memo_defaults_to_title(self, monthly_master, owner_id):
        drafts = generate_transactions_from_master(monthly_master, [], owner_id)
        assert drafts[0].memo == "Office rent"

        with_memo = monthly_master.model_copy(update={"memo": "Building A"})
        assert generate_transactions_from_master(with_memo, [], owner_id)[0].memo == "Building A"

    def test_copies_amount_type_and_tax(self, monthly_master, owner_id):
        drafts = generate_transactions_from_master(
            monthly_master, [], owner_id, tax_rate=Decimal("0.08")
        )
        assert all(d.amount == Decimal("120000") for d in drafts)
        assert all(d.type == TransactionType.EXPENSE for d in drafts)
        assert all(d.tax_rate == Decimal("0.08") for d in drafts)
        assert all(d.owner_id == owner_id for d in drafts)

    def test_no_start_date_is_empty(self, monthly_master, owner_id):
        master = monthly_master.model_copy(update={"start_date": None})
        assert generate_transactions_from_master(master, [], owner_id) == []

    def test_idempotent(self, monthly_master, client_25_10, owner_id):
        master = monthly_master.model_copy(update={"client_id": client_25_10.id})
        first = generate_transactions_from_master(master, [client_25_10], owner_id)
        second = generate_transactions_from_master(master, [client_25_10], owner_id)
        assert first == second


class TestAutoExtensionPolicy:
    """Tests for needs_auto_extension."""

    def test_horizon_three_months_out_needs_extension(self, monthly_master):
        existing = [instance("master-1", date(2024, 4, 1))]
        assert needs_auto_extension(monthly_master, existing, 6, now=date(2024, 1, 1)) is True

    def test_horizon_eight_months_out_does_not(self, monthly_master):
        existing = [instance("master-1", date(2024, 9, 1))]
        assert needs_auto_extension(monthly_master, existing, 6, now=date(2024, 1, 1)) is False

    def test_no_instances_needs_extension(self, monthly_master):
        assert needs_auto_extension(monthly_master, [], now=date(2024, 1, 1)) is True

    def test_other_masters_instances_are_ignored(self, monthly_master):
        existing = [instance("master-2", date(2030, 1, 1))]
        assert needs_auto_extension(monthly_master, existing, now=date(2024, 1, 1)) is True

    def test_inactive_master_is_not_extended(self, monthly_master):
        master = monthly_master.model_copy(update={"is_active": False})
        assert needs_auto_extension(master, [], now=date(2024, 1, 1)) is False

    def test_ended_master_is_not_extended(self, monthly_master):
        master = monthly_master.model_copy(update={"end_date": date(2024, 12, 31)})
        assert needs_auto_extension(master, [], now=date(2024, 1, 1)) is False

    def test_latest_instance_date(self):
        txs = [instance("m", date(2024, 3, 1)), instance("m", date(2024, 5, 1))]
        assert latest_instance_date(txs) == date(2024, 5, 1)
        assert latest_instance_date([]) is None


class TestExtensionTransactions:
    """Tests for generate_extension_transactions."""

    def test_continues_after_latest_without_gap(self, monthly_master, owner_id):
        existing = generate_transactions_from_master(monthly_master, [], owner_id)
        latest = max(t.recurring_instance_date for t in existing)

        extension = generate_extension_transactions(monthly_master, existing, [], owner_id)
        dates = [t.recurring_instance_date for t in extension]

        assert dates[0] == calculate_next_occurrence(latest, Frequency.MONTHLY, 31)
        assert dates[0] == date(2025, 2, 28)
        assert set(dates).isdisjoint(t.recurring_instance_date for t in existing)
        assert dates == sorted(dates)

    def test_extension_window_is_bounded(self, monthly_master, owner_id):
        existing = [instance("master-1", date(2024, 12, 31))]
        extension = generate_extension_transactions(
            monthly_master, existing, [], owner_id, extension_months=3
        )
        assert [t.recurring_instance_date for t in extension] == [
            date(2025, 1, 31),
            date(2025, 2, 28),
            date(2025, 3, 31),
            date(2025, 4, 30),
        ]

    def test_no_existing_defers_to_materializer(self, monthly_master, owner_id):
        assert generate_extension_transactions(monthly_master, [], [], owner_id) == \
            generate_transactions_from_master(monthly_master, [], owner_id)

    def test_respects_end_date(self, monthly_master, owner_id):
        master = monthly_master.model_copy(update={"end_date": date(2025, 2, 15)})
        existing = [instance("master-1", date(2024, 12, 31))]
        extension = generate_extension_transactions(master, existing, [], owner_id)
        assert [t.recurring_instance_date for t in extension] == [date(2025, 1, 31)]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
