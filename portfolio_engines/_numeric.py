"""Decimal rounding and clamping helpers shared by the engines."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")
WHOLE = Decimal("1")
TWO_PLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce an int/str/Decimal to Decimal; None becomes 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_whole(value: Decimal) -> Decimal:
    """Round to the nearest whole unit, halves away from zero."""
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


def round_ratio(value: Decimal) -> Decimal:
    """Round to 2 decimal places, halves away from zero."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def clamp(value: Decimal, low: Decimal = ZERO, high: Decimal = HUNDRED) -> Decimal:
    return max(low, min(high, value))


def clamped_percent(value: Decimal) -> int:
    """Round half-up to an integer percentage in [0, 100]."""
    return int(clamp(round_whole(value)))
