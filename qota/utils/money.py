"""
Qota Compensation - Money helpers

All monetary amounts are Decimal and rounded half-up to cents.
Percentages are whole-number percents (40 means 40%).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[Decimal, int, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round an amount to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Number, pct: Number) -> Decimal:
    """amount x pct / 100, unrounded."""
    return to_decimal(amount) * to_decimal(pct) / HUNDRED


def ratio_pct(part: Number, whole: Number) -> Decimal:
    """part / whole x 100, or 0 when whole is 0."""
    whole = to_decimal(whole)
    if whole == 0:
        return ZERO
    return to_decimal(part) / whole * HUNDRED


def sum_money(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)
