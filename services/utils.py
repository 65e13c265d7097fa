"""
Small numeric helpers shared by the scoring and progress services.
"""
from __future__ import annotations

import math
from numbers import Real

from core.errors import ValidationError


def round_half_up(value: float, digits: int = 0) -> float | int:
    """
    Round with .5 going up, the way clinical sheets are filled in.

    Python's round() uses banker's rounding (round(2.5) == 2), which would
    move audiometric averages and percentages off by one at the boundary.
    """
    factor = 10**digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def coerce_number(value, field: str) -> float:
    """Accept real numbers and numeric strings; reject bools, blanks and NaN."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be numeric.", field=field)
    if isinstance(value, Real):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be numeric.", field=field) from None
    else:
        raise ValidationError(f"{field} must be numeric.", field=field)

    if math.isnan(number) or math.isinf(number):
        raise ValidationError(f"{field} must be a finite number.", field=field)
    return number
