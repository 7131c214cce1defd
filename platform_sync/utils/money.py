"""Decimal helpers for prices arriving as floats, strings or minor units."""
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def from_minor_units(value: Any) -> Decimal:
    """Pennies/kuruş to a two-place decimal amount."""
    amount = to_decimal(value)
    return (amount / 100).quantize(Decimal("0.01"))


def to_float(value: Any) -> float:
    return float(to_decimal(value))
