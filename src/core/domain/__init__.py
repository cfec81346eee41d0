"""
Domain models and value objects.

Содержит immutable снапшоты состояния трёх вариантов токена, котировки,
ratio, события и единицы измерения.
"""

from src.core.domain.events import EventType, IssuanceEvent
from src.core.domain.position import ETH, AlgorithmicCoinParams, AlgorithmicCoinState, LSDConfig, StakingState, UserPosition
from src.core.domain.quote import FeedRound, PriceQuote, PriceReader
from src.core.domain.ratio import Ratio, RatioKind
from src.core.domain.reserve_state import Asset, ReserveCoinParams, ReserveCoinState, UserComplianceRecord
from src.core.domain.token_ledger import TokenLedgerState, TokenMetadata
from src.core.domain.tx import TxContext
from src.core.domain.units import (
    BPS_SCALE,
    PRICE_DECIMALS,
    PRICE_SCALE,
    SECONDS_PER_DAY,
    SECONDS_PER_YEAR,
    TOKEN_DECIMALS,
    TOKEN_SCALE,
    amount_for_value,
    apply_bps,
    compose_prices,
    ratio_bps,
    value_in_usd,
)
from src.core.domain.vault_state import UserYieldRecord, VaultState, YieldVaultLedgerState, YieldVaultParams

__all__ = [
    # Units module
    "PRICE_DECIMALS",
    "PRICE_SCALE",
    "TOKEN_DECIMALS",
    "TOKEN_SCALE",
    "BPS_SCALE",
    "SECONDS_PER_DAY",
    "SECONDS_PER_YEAR",
    "value_in_usd",
    "amount_for_value",
    "apply_bps",
    "ratio_bps",
    "compose_prices",
    # Values
    "Ratio",
    "RatioKind",
    "FeedRound",
    "PriceQuote",
    "PriceReader",
    "TxContext",
    # Events
    "EventType",
    "IssuanceEvent",
    # Token ledger
    "TokenMetadata",
    "TokenLedgerState",
    # Reserve coin
    "Asset",
    "UserComplianceRecord",
    "ReserveCoinParams",
    "ReserveCoinState",
    # Algorithmic coin
    "ETH",
    "UserPosition",
    "LSDConfig",
    "StakingState",
    "AlgorithmicCoinParams",
    "AlgorithmicCoinState",
    # Yield vault
    "VaultState",
    "UserYieldRecord",
    "YieldVaultParams",
    "YieldVaultLedgerState",
]
