"""
Position — позиции algorithmic coin (vltUSDe)

Immutable Pydantic модели:
- UserPosition: collateral и долг пользователя по каждому виду collateral
- LSDConfig: зарегистрированный liquid staking derivative
- StakingState: учёт staking-accrual от депозитов
- AlgorithmicCoinParams: ratio / threshold / penalty
- AlgorithmicCoinState: агрегат, которым владеет контроллер

Позиция создаётся неявно при первом депозите и никогда не удаляется —
после ликвидации или полного погашения она остаётся нулевой.
"""

from typing import Dict, Final

from pydantic import BaseModel, Field, model_validator

from src.core.domain.token_ledger import TokenLedgerState
from src.core.domain.units import BPS_SCALE


# Идентификатор нативного collateral
ETH: Final[str] = "ETH"


class UserPosition(BaseModel):
    """
    Позиция пользователя.

    Каждый вид collateral — отдельная sub-position со своим долгом и ratio.
    """

    collateral_by_asset: Dict[str, int] = Field(default_factory=dict)
    debt_by_asset: Dict[str, int] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def collateral(self, kind: str) -> int:
        return self.collateral_by_asset.get(kind, 0)

    def debt(self, kind: str) -> int:
        return self.debt_by_asset.get(kind, 0)

    @property
    def total_debt(self) -> int:
        return sum(self.debt_by_asset.values())

    def with_entry(self, kind: str, collateral: int, debt: int) -> "UserPosition":
        """Новая позиция с заменённой sub-position kind."""
        if collateral < 0 or debt < 0:
            raise ValueError(f"Position entry cannot be negative: collateral={collateral}, debt={debt}")
        return UserPosition(
            collateral_by_asset={**self.collateral_by_asset, kind: collateral},
            debt_by_asset={**self.debt_by_asset, kind: debt},
        )


class LSDConfig(BaseModel):
    """
    Liquid staking derivative.

    rate_feed_asset — ключ оракула, котирующий LSD/ETH (1e8 = 1:1).
    """

    asset_id: str = Field(..., min_length=1)
    rate_feed_asset: str = Field(..., min_length=1)
    supported: bool = True

    model_config = {"frozen": True}


class StakingState(BaseModel):
    """Staking-accrual, начисляемый пропорционально новым депозитам."""

    reward_rate_bps: int = Field(0, ge=0, le=BPS_SCALE)
    total_staked: int = Field(0, ge=0)
    pending_rewards: int = Field(0, ge=0)
    total_harvested: int = Field(0, ge=0)

    model_config = {"frozen": True}


class AlgorithmicCoinParams(BaseModel):
    """
    Параметры algorithmic coin.

    liquidation_threshold строго ниже min_collateral_ratio — между ними
    буферная зона "нельзя выводить, но ещё нельзя ликвидировать".
    """

    min_collateral_ratio_bps: int = Field(14_000, gt=0)
    liquidation_threshold_bps: int = Field(13_000, gt=0)
    liquidation_penalty_bps: int = Field(1_000, ge=0, le=BPS_SCALE)
    liquidator_cut_bps: int = Field(5_000, ge=0, le=BPS_SCALE)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_threshold_below_minimum(self) -> "AlgorithmicCoinParams":
        if self.liquidation_threshold_bps >= self.min_collateral_ratio_bps:
            raise ValueError(
                f"liquidation_threshold_bps {self.liquidation_threshold_bps} must be below "
                f"min_collateral_ratio_bps {self.min_collateral_ratio_bps}"
            )
        return self


class AlgorithmicCoinState(BaseModel):
    """Агрегат algorithmic coin."""

    params: AlgorithmicCoinParams
    token: TokenLedgerState
    eth_price_asset: str = Field(..., min_length=1, description="Ключ оракула ETH/USD")
    eth_supported: bool = False
    lsds: Dict[str, LSDConfig] = Field(default_factory=dict)
    positions: Dict[str, UserPosition] = Field(default_factory=dict)
    custody: Dict[str, int] = Field(default_factory=dict, description="Collateral под custody по виду")
    protocol_retained: Dict[str, int] = Field(default_factory=dict)
    staking: StakingState = Field(default_factory=StakingState)
    paused: bool = False

    model_config = {"frozen": True}

    def position_of(self, account: str) -> UserPosition:
        return self.positions.get(account, UserPosition())

    def custody_of(self, kind: str) -> int:
        return self.custody.get(kind, 0)

    def supported_kinds(self) -> list[str]:
        kinds = [ETH] if self.eth_supported else []
        kinds.extend(asset for asset, lsd in self.lsds.items() if lsd.supported)
        return kinds
