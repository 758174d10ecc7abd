"""
Money helpers: Decimal normalisation and integer minor-unit conversion.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from chainmove.core.exceptions import ValidationError

MINOR_UNITS_PER_MAJOR = 100
BASIS_POINTS = 10_000
TWO_PLACES = Decimal("0.01")


def quantize(amount: Decimal) -> Decimal:
    """Round a Decimal to two places (kobo precision)."""
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field_label: str = "amount") -> Decimal:
    """
    Convert a user or gateway supplied amount to a positive, finite Decimal.

    Floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Invalid {field_label}.")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field_label}.")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field_label.capitalize()} must be greater than zero.")
    return quantize(amount)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit Decimal (NGN) to integer minor units (kobo)."""
    return int(quantize(Decimal(amount)) * MINOR_UNITS_PER_MAJOR)


def from_minor_units(minor: int) -> Decimal:
    """Convert integer minor units back to a two-place Decimal."""
    return quantize(Decimal(minor) / MINOR_UNITS_PER_MAJOR)


def ownership_bps(contribution_minor: int, total_minor: int) -> int:
    """Share of the pool as integer basis points, floored and clamped to 0..10000."""
    if total_minor <= 0:
        return 0
    return min(max((contribution_minor * BASIS_POINTS) // total_minor, 0), BASIS_POINTS)


def as_decimal(value: Any) -> Decimal:
    """Read a stored money column (Decimal, int or None) as a two-place Decimal."""
    if value is None:
        return Decimal("0.00")
    return quantize(value if isinstance(value, Decimal) else Decimal(str(value)))
