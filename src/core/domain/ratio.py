"""
Ratio — collateral ratio как tagged result

При нулевом долге (или нулевом supply) ratio не определён. Вместо магического
максимального целого используется явный вариант UNDEFINED, чтобы сравнения
"ratio < threshold" не давали тихих ошибок.

Семантика сравнений:
- UNDEFINED никогда не ниже порога (позиция без долга не ликвидируется)
- UNDEFINED всегда удовлетворяет минимуму
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RatioKind(str, Enum):
    """Вариант ratio."""

    UNDEFINED = "undefined"
    VALUE = "value"


@dataclass(frozen=True)
class Ratio:
    """Collateral ratio в basis points или UNDEFINED."""

    kind: RatioKind
    value_bps: Optional[int] = None

    def __post_init__(self):
        if self.kind == RatioKind.VALUE and (self.value_bps is None or self.value_bps < 0):
            raise ValueError(f"Ratio VALUE requires non-negative value_bps, got {self.value_bps}")
        if self.kind == RatioKind.UNDEFINED and self.value_bps is not None:
            raise ValueError("Ratio UNDEFINED cannot carry value_bps")

    @classmethod
    def undefined(cls) -> "Ratio":
        return cls(kind=RatioKind.UNDEFINED)

    @classmethod
    def of(cls, value_bps: int) -> "Ratio":
        return cls(kind=RatioKind.VALUE, value_bps=value_bps)

    @property
    def is_undefined(self) -> bool:
        return self.kind == RatioKind.UNDEFINED

    def is_below(self, threshold_bps: int) -> bool:
        """True если ratio определён и строго ниже порога."""
        if self.is_undefined:
            return False
        return self.value_bps < threshold_bps

    def meets(self, minimum_bps: int) -> bool:
        """True если ratio не ниже минимума (UNDEFINED всегда удовлетворяет)."""
        return not self.is_below(minimum_bps)

    def __str__(self) -> str:
        if self.is_undefined:
            return "Ratio(undefined)"
        return f"Ratio({self.value_bps} bps)"
