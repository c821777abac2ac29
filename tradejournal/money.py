"""Cent-precision helpers shared by the calculator, metrics engine and validator."""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, Field

# Maximum discrepancy between two independently computed monetary values.
TOLERANCE = 0.01

_CENT = Decimal("0.01")


def round_currency(value: Optional[float]) -> float:
    """Round a monetary value to cents, half away from zero.

    Goes through the decimal repr so 10.125 rounds to 10.13 rather than
    being pulled down by its binary approximation. None, NaN and infinities
    collapse to 0.0.
    """
    if value is None or not math.isfinite(value):
        return 0.0
    rounded = float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_UP))
    return rounded + 0.0  # normalise -0.0


def add_currency(*values: Optional[float]) -> float:
    """Sum monetary values and round the result to cents."""
    return round_currency(math.fsum(v or 0.0 for v in values))


def subtract_currency(minuend: float, subtrahend: float) -> float:
    """Subtract two monetary values and round the result to cents."""
    return round_currency(minuend - subtrahend)


class ToleranceViolation(BaseModel):
    """Two monetary figures that disagree by more than the allowed tolerance.

    Only ever reported inside a validation check, never raised.
    """

    expected: float = Field(..., description="Independently recomputed value")
    actual: float = Field(..., description="Stored or reported value")
    tolerance: float = Field(default=TOLERANCE, description="Allowed difference")
    difference: float = Field(..., ge=0, description="Absolute difference")

    model_config = {"frozen": True}


def check_tolerance(
    expected: float, actual: float, tolerance: float = TOLERANCE
) -> Optional[ToleranceViolation]:
    """Compare two figures after cent rounding.

    Returns:
        None when they agree within tolerance, otherwise the violation.
    """
    difference = abs(round_currency(expected) - round_currency(actual))
    # Rounded operands can leave float residue like 0.010000000000218.
    if round(difference, 6) <= tolerance:
        return None
    return ToleranceViolation(
        expected=round_currency(expected),
        actual=round_currency(actual),
        tolerance=tolerance,
        difference=round(difference, 6),
    )
