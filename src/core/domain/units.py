"""
Units — централизованный модуль конверсии единиц

Единственный допустимый способ преобразований между:
- количеством collateral (минимальные единицы актива, 1e18)
- стоимостью в USD (те же 1e18, что и выпущенный токен)
- basis points (10000 = 100%)

ЗАПРЕЩЕНО смешивать единицы без явного конвертера из этого модуля.
"""

from typing import Final

from src.core.math.fixed_point import Rounding, mul_div


# =============================================================================
# МАСШТАБЫ
# =============================================================================

# Цены оракула: 8 знаков после запятой ($2000 → 200000000000)
PRICE_DECIMALS: Final[int] = 8
PRICE_SCALE: Final[int] = 10**PRICE_DECIMALS

# Выпускаемые токены и collateral: 18 знаков
TOKEN_DECIMALS: Final[int] = 18
TOKEN_SCALE: Final[int] = 10**TOKEN_DECIMALS

# Basis points: 10000 = 100%
BPS_SCALE: Final[int] = 10_000

SECONDS_PER_DAY: Final[int] = 86_400
SECONDS_PER_YEAR: Final[int] = 365 * SECONDS_PER_DAY


# =============================================================================
# КОНВЕРТЕРЫ
# =============================================================================


def value_in_usd(amount: int, price: int) -> int:
    """
    Стоимость количества актива в USD.

    value = amount * price / 1e8

    Args:
        amount: Количество актива (1e18)
        price: Цена актива (1e8)

    Returns:
        Стоимость в USD (1e18), округление вниз
    """
    return mul_div(amount, price, PRICE_SCALE)


def amount_for_value(value_usd: int, price: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """
    Количество актива, соответствующее стоимости в USD.

    amount = value * 1e8 / price

    Raises:
        ZeroDivisionError: Если price == 0
    """
    return mul_div(value_usd, PRICE_SCALE, price, rounding)


def apply_bps(amount: int, bps: int) -> int:
    """amount * bps / 10000, округление вниз."""
    return mul_div(amount, bps, BPS_SCALE)


def ratio_bps(value: int, base: int) -> int:
    """
    Отношение value / base в basis points.

    Raises:
        ZeroDivisionError: Если base == 0 — вызывающий код обязан
            обработать нулевой долг/supply через Ratio.undefined()
    """
    return mul_div(value, BPS_SCALE, base)


def compose_prices(price_a: int, price_b: int) -> int:
    """
    Композиция двух котировок в 1e8: (A/B) * (B/USD) = A/USD.

    Используется для LSD: lsd_eth_rate * eth_usd / 1e8.
    """
    return mul_div(price_a, price_b, PRICE_SCALE)
