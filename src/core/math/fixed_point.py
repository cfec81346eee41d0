"""
Fixed Point — целочисленная арифметика с явным округлением

Все суммы в ядре — неотрицательные целые в минимальных единицах
(токены 1e18, цены 1e8, ставки и ratio в basis points). Float не используется
нигде в state transition: результат должен быть детерминирован и
воспроизводим бит-в-бит.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Деление на ноль никогда не выполняется молча — ZeroDivisionError или
   явный fallback у вызывающего кода
2. Направление округления всегда указано явно (FLOOR по умолчанию)
3. Отрицательные суммы не допускаются (validate_non_negative)
"""

from enum import Enum


class Rounding(str, Enum):
    """Направление округления целочисленного деления."""

    FLOOR = "floor"
    CEIL = "ceil"


# =============================================================================
# ДЕЛЕНИЕ
# =============================================================================


def mul_div(a: int, b: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """
    Вычисление a * b / denominator без промежуточной потери точности.

    Python int не переполняется, поэтому произведение считается точно,
    а округление выполняется один раз в конце.

    Args:
        a: Первый множитель (>= 0)
        b: Второй множитель (>= 0)
        denominator: Делитель (> 0)
        rounding: FLOOR (вниз) или CEIL (вверх)

    Returns:
        Целочисленный результат

    Raises:
        ZeroDivisionError: Если denominator == 0
        ValueError: Если аргументы отрицательные

    Examples:
        >>> mul_div(10, 3, 4)
        7
        >>> mul_div(10, 3, 4, Rounding.CEIL)
        8
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    if a < 0 or b < 0 or denominator < 0:
        raise ValueError(f"mul_div expects non-negative operands, got {a}, {b}, {denominator}")

    product = a * b
    if rounding == Rounding.CEIL:
        return -(-product // denominator)
    return product // denominator


def abs_diff(a: int, b: int) -> int:
    """|a - b| для целых."""
    return a - b if a >= b else b - a


def clamp(value: int, lower: int, upper: int) -> int:
    """
    Ограничение значения диапазоном [lower, upper].

    Raises:
        ValueError: Если lower > upper
    """
    if lower > upper:
        raise ValueError(f"clamp bounds inverted: lower={lower} > upper={upper}")
    return max(lower, min(value, upper))


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def validate_non_negative(value: int, name: str = "value") -> int:
    """
    Проверка, что сумма — неотрицательное целое.

    Raises:
        TypeError: Если value не int (bool тоже отклоняется)
        ValueError: Если value < 0
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} cannot be negative: {value}")
    return value


def checked_sub(a: int, b: int, name: str = "value") -> int:
    """
    Вычитание без ухода в минус.

    Raises:
        ValueError: Если b > a
    """
    if b > a:
        raise ValueError(f"{name} underflow: {a} - {b}")
    return a - b
