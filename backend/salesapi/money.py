from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

# Monetary amounts are stored as Numeric(12, 2); quantities as Numeric(12, 3)
MONEY_PRECISION = Decimal("0.01")
QUANTITY_PRECISION = Decimal("0.001")

# Largest values the columns hold (12 digits total)
MAX_MONEY = Decimal("9999999999.99")
MAX_QUANTITY = Decimal("999999999.999")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a JSON-ish numeric value to Decimal without float artefacts.

    - Decimal -> unchanged
    - int -> exact
    - float -> via repr (0.1 -> Decimal('0.1'), not the binary expansion)
    - str -> parsed; blank or non-numeric raises ValueError
    - bool and anything else -> ValueError
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("blank string is not a number")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValueError(f"{value!r} is not a number")
    else:
        raise ValueError(f"{type(value).__name__} is not a number")

    if not result.is_finite():
        raise ValueError("number must be finite")
    return result


def _quantize(value: Any, precision: Decimal) -> Decimal:
    try:
        return to_decimal(value).quantize(precision, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"{value!r} is too large")


def round_money(value: Any) -> Decimal:
    """
    round(value, 2) with half-up rounding, e.g. 2.345 -> 2.35.

    Raises ValueError for non-numbers and for values too large to quantize.
    """
    return _quantize(value, MONEY_PRECISION)


def round_quantity(value: Any) -> Decimal:
    """round(value, 3) with half-up rounding, e.g. 0.0004 -> 0.000."""
    return _quantize(value, QUANTITY_PRECISION)


def money_str(value: Optional[Decimal]) -> Optional[str]:
    """Serialize a monetary amount as a fixed 2-decimal string."""
    if value is None:
        return None
    return str(round_money(value))


def quantity_str(value: Optional[Decimal]) -> Optional[str]:
    """Serialize a quantity, dropping trailing zeros (2.000 -> '2')."""
    if value is None:
        return None
    return format(round_quantity(value).normalize(), "f")
