"""
Tests for currency math and the read-only financial views.
"""

import pytest
from datetime import date
from decimal import Decimal

from cashflow.engine.financials import (
    VIRTUAL_ID_PREFIX,
    calculate_project_financials,
    convert_project_to_transaction,
    filter_transactions_by_date,
    get_display_date,
    get_health_status,
    map_transactions_for_calendar,
    summarize_cash_flow,
)
from cashflow.engine.money import (
    add,
    calculate_gross_profit,
    calculate_profit_margin,
    divide,
    format_currency,
    is_negative,
    is_positive,
    is_zero,
    multiply,
    subtract,
    to_decimal,
    total,
)
from cashflow.models import HealthStatus, TransactionType, ViewMode


class TestMoney:
    """Tests for Decimal arithmetic helpers."""

    def test_to_decimal(self):
        assert to_decimal("1000.50") == Decimal("1000.50")
        assert to_decimal(3) == Decimal("3")
        assert to_decimal(None) == Decimal("0")
        assert to_decimal("") == Decimal("0")

    def test_rejects_float(self):
        with pytest.raises(ValueError):
            to_decimal(0.1)

    def test_no_binary_rounding(self):
        assert add("0.1", "0.2") == Decimal("0.3")

    def test_arithmetic(self):
        assert subtract("100", 30) == Decimal("70")
        assert multiply("120000", "0.1") == Decimal("12000.0")
        assert divide("10", "4") == Decimal("2.5")
        assert total(["1", 2, None, Decimal("3.5")]) == Decimal("6.5")

    def test_divide_by_zero_is_zero(self):
        assert divide("10", "0") == Decimal("0")

    def test_sign_predicates(self):
        assert is_positive("1")
        assert is_negative("-0.01")
        assert is_zero(None)
        assert not is_positive("0")


class TestProfit:
    """Tests for gross profit and margin."""

    def test_gross_profit(self):
        assert calculate_gross_profit("500000", "350000") == Decimal("150000")

    def test_margin_rounds_half_up(self):
        assert calculate_profit_margin("150000", "500000") == 30.0
        assert calculate_profit_margin("1", "3") == 33.3
        assert calculate_profit_margin("2", "3") == 66.7
        assert calculate_profit_margin("1", "8") == 12.5

    def test_margin_without_income(self):
        assert calculate_profit_margin("-5000", "0") == 0.0

    @pytest.mark.parametrize("margin,expected", [
        (45.0, HealthStatus.HEALTHY),
        (30.0, HealthStatus.HEALTHY),
        (29.9, HealthStatus.WARNING),
        (10.0, HealthStatus.WARNING),
        (9.9, HealthStatus.DANGER),
        (-20.0, HealthStatus.DANGER),
    ])
    def test_health_status(self, margin, expected):
        assert get_health_status(margin) == expected


class TestFormatCurrency:
    """Tests for display formatting."""

    def test_grouping(self):
        assert format_currency("1234567") == "¥1,234,567"
        assert format_currency("1234.5") == "¥1,234.5"
        assert format_currency("0") == "¥0"

    def test_signs(self):
        assert format_currency("-500") == "-¥500"
        assert format_currency("1500", show_sign=True) == "+¥1,500"
        assert format_currency("0", show_sign=True) == "¥0"

    def test_compact(self):
        assert format_currency("125000", compact=True) == "¥12.5万"
        assert format_currency("230000000", compact=True) == "¥2.3億"
        assert format_currency("9999", compact=True) == "¥9,999"
        assert format_currency("-15000", compact=True) == "-¥1.5万"

    def test_custom_symbol(self):
        assert format_currency("2500", symbol="$") == "$2,500"


class TestProjectFinancials:
    """Tests for project profit and loss."""

    def test_totals(self, project, make_income):
        txs = [
            make_income(project.id, amount=Decimal("300000")),
            make_income(project.id, amount=Decimal("200000")),
            make_income(project.id, type=TransactionType.EXPENSE, amount=Decimal("350000")),
            make_income("other-project", amount=Decimal("999999")),
        ]

        result = calculate_project_financials(project, txs)

        assert result.total_income == Decimal("500000")
        assert result.total_expense == Decimal("350000")
        assert result.gross_profit == Decimal("150000")
        assert result.profit_margin == 30.0
        assert result.transaction_count == 3
        assert len(result.income_transactions) == 2
        assert result.is_deficit is False

    def test_deficit(self, project, make_income):
        txs = [
            make_income(project.id, amount=Decimal("100000")),
            make_income(project.id, type=TransactionType.EXPENSE, amount=Decimal("150000")),
        ]
        result = calculate_project_financials(project, txs)
        assert result.is_deficit is True
        assert result.profit_margin == -50.0

    def test_missing_project(self, make_income):
        result = calculate_project_financials(None, [make_income("p1")])
        assert result.total_income == Decimal("0")
        assert result.transaction_count == 0


class TestProjectAsTransaction:
    """Tests for presenting a project as expected income."""

    def test_accrues_on_end_date(self, project):
        tx = convert_project_to_transaction(project)

        assert tx.id == f"{VIRTUAL_ID_PREFIX}{project.id}"
        assert tx.type == TransactionType.INCOME
        assert tx.amount == project.estimated_amount
        assert tx.transaction_date == date(2024, 1, 20)
        assert tx.settlement_date is None
        assert tx.memo == project.title
        assert tx.is_estimate is True

    def test_falls_back_to_start_date(self, project):
        tx = convert_project_to_transaction(project.model_copy(update={"end_date": None}))
        assert tx.transaction_date == date(2024, 1, 5)

    def test_falls_back_to_given_date(self, project):
        undated = project.model_copy(update={"start_date": None, "end_date": None})
        assert convert_project_to_transaction(undated, date(2024, 7, 1)).transaction_date == \
            date(2024, 7, 1)
        assert convert_project_to_transaction(undated).transaction_date is None


class TestCalendarViews:
    """Tests for placing transactions by view mode."""

    def test_display_date_by_view_mode(self, make_income):
        tx = make_income("p1")
        assert get_display_date(tx, ViewMode.ACCRUAL) == date(2024, 1, 20)
        assert get_display_date(tx, ViewMode.PROJECT) == date(2024, 1, 20)
        assert get_display_date(tx, ViewMode.CASH) == date(2024, 2, 10)

    def test_cash_view_falls_back_to_transaction_date(self, make_income):
        tx = make_income("p1", settlement_date=None)
        assert get_display_date(tx, ViewMode.CASH) == date(2024, 1, 20)

    def test_map_for_calendar_skips_undated(self, make_income):
        entries = map_transactions_for_calendar(
            [make_income("p1"), make_income("p1", transaction_date=None, settlement_date=None)],
            ViewMode.CASH,
        )
        assert len(entries) == 1
        assert entries[0].date == date(2024, 2, 10)
        assert entries[0].type == "income"
        assert entries[0].amount == Decimal("250000")

    def test_filter_by_date(self, make_income):
        txs = [make_income("p1"), make_income("p1", transaction_date=date(2024, 2, 10))]
        assert len(filter_transactions_by_date(txs, date(2024, 2, 10), ViewMode.CASH)) == 2
        assert len(filter_transactions_by_date(txs, date(2024, 2, 10), ViewMode.ACCRUAL)) == 1


class TestCashFlowSummary:
    """Tests for the day-by-day projection."""

    def test_running_balance(self, make_income):
        txs = [
            make_income("p1", settlement_date=date(2024, 2, 10)),
            make_income(
                "p1",
                type=TransactionType.EXPENSE,
                amount=Decimal("100000"),
                settlement_date=date(2024, 2, 12),
            ),
            make_income("p1", settlement_date=date(2024, 3, 1)),
        ]

        days = summarize_cash_flow(
            txs, ViewMode.CASH, date(2024, 2, 10), date(2024, 2, 12), opening_balance="50000"
        )

        assert [d.date for d in days] == [date(2024, 2, 10), date(2024, 2, 11), date(2024, 2, 12)]
        assert days[0].income == Decimal("250000")
        assert days[0].balance == Decimal("300000")
        assert days[1].net == Decimal("0")
        assert days[1].balance == Decimal("300000")
        assert days[2].expense == Decimal("100000")
        assert days[2].balance == Decimal("200000")

    def test_accrual_view_uses_transaction_dates(self, make_income):
        days = summarize_cash_flow(
            [make_income("p1")], ViewMode.ACCRUAL, date(2024, 1, 20), date(2024, 1, 20)
        )
        assert days[0].income == Decimal("250000")

    def test_rejects_reversed_range(self):
        with pytest.raises(ValueError):
            summarize_cash_flow([], ViewMode.CASH, date(2024, 2, 2), date(2024, 2, 1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
