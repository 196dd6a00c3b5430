"""Money helpers.

All monetary values in the engine are ``Decimal`` quantized to cents with
ROUND_HALF_UP. Conversion from user or wire input never raises: anything
that cannot be read as a finite number becomes zero.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Reconciliation slack used by the allocator and validator.
TOLERANCE = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Read a value as an unrounded Decimal.

    Accepts Decimal, int, float and numeric strings (a leading ``$`` and
    thousands separators are tolerated). Returns 0 for None, booleans,
    non-finite numbers and anything unparsable.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "").replace("$", "")
        if not cleaned:
            return ZERO
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return ZERO
    else:
        return ZERO

    if not result.is_finite():
        return ZERO
    return result


def round_money(value: Any) -> Decimal:
    """Round to cents (ROUND_HALF_UP)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def coerce_money(value: Any) -> Decimal:
    """Round to cents and clamp negatives to zero.

    Used for amounts that must be non-negative (targets, income, allocations).
    """
    amount = round_money(value)
    if amount < ZERO:
        return ZERO
    return amount


def sum_money(values) -> Decimal:
    """Sum an iterable of amounts, rounding the total to cents."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return round_money(total)


__all__ = [
    "CENT",
    "ZERO",
    "TOLERANCE",
    "to_decimal",
    "round_money",
    "coerce_money",
    "sum_money",
]
