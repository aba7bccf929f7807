"""
Monetary helpers.

Amounts are carried as integer cents inside the engine and converted back to
dollars for output. Rounding is half-up, matching how reps see prices on the
printed quote.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any


def to_number(value: Any) -> float:
    """Coerce a price/rate field to a finite float. Anything else is 0."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    value = to_number(value)
    return int(Decimal(repr(value)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def to_cents(dollars: Any) -> int:
    """Dollars (any numeric-ish input) to integer cents."""
    amount = Decimal(repr(to_number(dollars))) * 100
    return int(amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def to_dollars(cents: int) -> float:
    return cents / 100


def percent_of(cents: int, percent: Any) -> int:
    """A percentage of a cents amount, rounded to whole cents."""
    return round_half_up(cents * to_number(percent) / 100)
