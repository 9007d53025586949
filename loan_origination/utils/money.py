"""Cent-exact money helpers"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

Numeric = Union[Decimal, int, float, str]


def to_decimal(value: Numeric) -> Decimal:
    """Coerce input to Decimal, going through str so floats keep their printed value"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_cents(value: Numeric) -> Decimal:
    """Round to the nearest cent, half-up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Numeric) -> int:
    """Whole cents for an amount (rounded half-up first)"""
    return int(round_cents(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)
