"""
Core math modules

Целочисленная fixed-point арифметика с явным направлением округления.
"""

from src.core.math.fixed_point import (
    Rounding,
    abs_diff,
    checked_sub,
    clamp,
    mul_div,
    validate_non_negative,
)

__all__ = [
    "Rounding",
    "mul_div",
    "abs_diff",
    "clamp",
    "checked_sub",
    "validate_non_negative",
]
