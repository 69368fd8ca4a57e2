"""
Currency math on Decimal.

Amounts arrive as Decimal, int or decimal strings (as persisted). Missing
values count as zero. Binary floats are refused, the same as at the model
boundary.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Union

AmountLike = Union[Decimal, int, str, None]

ZERO = Decimal("0")
_ONE_PLACE = Decimal("0.1")
_DISPLAY_PLACES = Decimal("0.001")

# Compact display units, largest first
_COMPACT_UNITS = (
    (Decimal("100000000"), "億"),
    (Decimal("10000"), "万"),
)


def to_decimal(value: AmountLike) -> Decimal:
    """Coerce an amount to Decimal; None and "" are zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, float):
        raise ValueError("Amounts must be given as decimal strings or Decimal, not float")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def add(a: AmountLike, b: AmountLike) -> Decimal:
    return to_decimal(a) + to_decimal(b)


def subtract(a: AmountLike, b: AmountLike) -> Decimal:
    return to_decimal(a) - to_decimal(b)


def multiply(a: AmountLike, b: AmountLike) -> Decimal:
    return to_decimal(a) * to_decimal(b)


def divide(a: AmountLike, b: AmountLike) -> Decimal:
    """a / b, or zero when b is zero."""
    divisor = to_decimal(b)
    if divisor.is_zero():
        return ZERO
    return to_decimal(a) / divisor


def total(amounts: Iterable[AmountLike]) -> Decimal:
    return sum((to_decimal(a) for a in amounts), ZERO)


def calculate_gross_profit(income: AmountLike, expense: AmountLike) -> Decimal:
    return subtract(income, expense)


def calculate_profit_margin(gross_profit: AmountLike, income: AmountLike) -> float:
    """
    Gross margin in percent, rounded half-up to one decimal place.

    Returns 0.0 when income is zero.
    """
    income_value = to_decimal(income)
    if income_value.is_zero():
        return 0.0
    margin = to_decimal(gross_profit) / income_value * 100
    return float(margin.quantize(_ONE_PLACE, rounding=ROUND_HALF_UP))


def is_positive(amount: AmountLike) -> bool:
    return to_decimal(amount) > 0


def is_negative(amount: AmountLike) -> bool:
    return to_decimal(amount) < 0


def is_zero(amount: AmountLike) -> bool:
    return to_decimal(amount).is_zero()


def _grouped(value: Decimal) -> str:
    # At most three fraction digits, trailing zeros dropped
    rounded = value.quantize(_DISPLAY_PLACES, rounding=ROUND_HALF_UP).normalize()
    return format(rounded, ",f")


def format_currency(
    amount: AmountLike,
    show_sign: bool = False,
    compact: bool = False,
    symbol: Optional[str] = None,
) -> str:
    """
    Format an amount for display.

    Examples (symbol "¥"):
        format_currency("1234567")                 -> "¥1,234,567"
        format_currency("-500")                    -> "-¥500"
        format_currency("1500", show_sign=True)    -> "+¥1,500"
        format_currency("125000", compact=True)    -> "¥12.5万"
        format_currency("230000000", compact=True) -> "¥2.3億"
    """
    symbol = "¥" if symbol is None else symbol
    value = to_decimal(amount)
    magnitude = abs(value)

    if value < 0:
        sign = "-"
    elif show_sign and value > 0:
        sign = "+"
    else:
        sign = ""

    if compact:
        for unit_size, unit_label in _COMPACT_UNITS:
            if magnitude >= unit_size:
                scaled = (magnitude / unit_size).quantize(_ONE_PLACE, rounding=ROUND_HALF_UP)
                return f"{sign}{symbol}{scaled}{unit_label}"

    return f"{sign}{symbol}{_grouped(magnitude)}"
