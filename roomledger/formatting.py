"""
Presentation helpers.

The core keeps full Decimal precision. Rounding happens here and only here,
when a value is about to be shown or serialized.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats don't drag binary noise into the Decimal
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round a money value to two places, half up."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_percent(value: Number, places: int = 1) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def money_for_display(value: Number) -> str:
    """Rounded money as a 2-place string, for JSON payloads."""
    return str(round_money(value))


def percent_for_display(value: Optional[Number]) -> Optional[float]:
    if value is None:
        return None
    return float(round_percent(value))


def format_money(value: Number, symbol: str = "$") -> str:
    """
    Format money for display: '-$12.50', '$1,200.00'.

    The sign goes before the symbol.
    """
    rounded = round_money(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


def format_percent(value: Optional[Number]) -> str:
    """Format a percentage with one decimal; 'N/A' when there is no value."""
    if value is None:
        return "N/A"
    return f"{round_percent(value)}%"
