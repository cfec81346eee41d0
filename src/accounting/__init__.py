"""Accounting — чистые расчёты и планирование переходов состояния.

Аккаунтанты не хранят состояние: каждый plan_* принимает снапшот и
возвращает новый вместе с рассчитанными величинами. Commit выполняет
контроллер.
"""

from .collateral_ledger import CollateralLedger, ReserveBurnPlan, ReserveMintPlan
from .position_accountant import LiquidationPlan, PositionAccountant, PositionBurnPlan, PositionMintPlan
from .vault_accountant import ClaimPlan, VaultAccountant, VaultPlan

__all__ = [
    "CollateralLedger",
    "ReserveMintPlan",
    "ReserveBurnPlan",
    "PositionAccountant",
    "PositionMintPlan",
    "PositionBurnPlan",
    "LiquidationPlan",
    "VaultAccountant",
    "VaultPlan",
    "ClaimPlan",
]
