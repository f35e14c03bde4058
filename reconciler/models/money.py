"""
Money helpers.

All amounts are Decimal. Rounding is half-up to the cent, matching how
amounts are displayed to users.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Round any numeric value to cents (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    return int(to_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def percentage(part: Decimal, whole: Decimal) -> int:
    """
    Whole-number percentage of part over whole, rounded half-up.

    Returns 0 when whole is zero or negative.
    """
    if whole <= 0:
        return 0
    return int((Decimal(part) / Decimal(whole) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def ratio(part: Decimal, whole: Decimal, places: str = "0.0001") -> Decimal:
    """Fraction of part over whole rounded to ``places``; 0 when whole is zero."""
    if whole == 0:
        return Decimal(places) * 0
    return (Decimal(part) / Decimal(whole)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def coerce_money(value) -> Decimal:
    """to_money for pydantic validators: bad input raises ValueError."""
    try:
        return to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid monetary amount: {value!r}")
