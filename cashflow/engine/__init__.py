"""
Planner Engine

The computation core: settlement dates, occurrence generation, transaction
materialization, auto-extension and guarded recalculation.

Everything except recalculate_settlement is pure and synchronous.
"""

from cashflow.engine.recalculation import (
    day_difference,
    recalculate_settlement,
    shift_dates,
)
from cashflow.engine.recurrence import (
    calculate_next_occurrence,
    generate_extension_transactions,
    generate_occurrence_dates,
    generate_transactions_from_master,
    iter_occurrence_dates,
    needs_auto_extension,
    set_day_with_month_end_fallback,
)
from cashflow.engine.settlement import (
    calculate_settlement_date,
    format_payment_cycle,
    settlement_date_for_client,
)

__all__ = [
    # Settlement
    "calculate_settlement_date",
    "format_payment_cycle",
    "settlement_date_for_client",
    # Recurrence
    "calculate_next_occurrence",
    "generate_extension_transactions",
    "generate_occurrence_dates",
    "generate_transactions_from_master",
    "iter_occurrence_dates",
    "needs_auto_extension",
    "set_day_with_month_end_fallback",
    # Recalculation
    "day_difference",
    "recalculate_settlement",
    "shift_dates",
]
