"""
VaultState — снапшот yield-bearing vault (vltUSDY)

Shares — это сам токен vault (TokenLedgerState), поэтому total_shares
берётся из token.total_supply. yield_buffer — синтетический: он входит в
total_assets(), но реально обеспечивается переводом только при claim.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator

from src.core.domain.token_ledger import TokenLedgerState
from src.core.domain.units import BPS_SCALE, SECONDS_PER_DAY


class VaultState(BaseModel):
    """Учёт активов и yield."""

    total_assets_held: int = Field(0, ge=0, description="Реально удерживаемые активы")
    yield_buffer: int = Field(0, ge=0, description="Начисленный, но не распределённый yield")
    yield_rate_bps: int = Field(0, ge=0, description="Годовая ставка (bps)")
    last_accrual: int = Field(0, ge=0, description="Время последнего начисления")
    total_yield_accrued: int = Field(0, ge=0, description="Кумулятивно начислено в buffer")
    total_yield_claimed: int = Field(0, ge=0, description="Кумулятивно выплачено по claim")
    last_rate_update: Optional[int] = Field(None, ge=0, description="Время последнего update_yield_rate")

    model_config = {"frozen": True}


class UserYieldRecord(BaseModel):
    """Атрибутированный пользователю, но ещё не выплаченный yield."""

    earned: int = Field(0, ge=0)
    last_touched: int = Field(0, ge=0)

    model_config = {"frozen": True}


class YieldVaultParams(BaseModel):
    """Параметры vault."""

    accrual_period: int = Field(SECONDS_PER_DAY, gt=0, description="Период начисления (sec)")
    min_yield_rate_bps: int = Field(0, ge=0, le=BPS_SCALE)
    max_yield_rate_bps: int = Field(2_000, ge=0, le=BPS_SCALE)
    yield_update_threshold: int = Field(SECONDS_PER_DAY, ge=0, description="Минимум между update_yield_rate")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_rate_bounds(self) -> "YieldVaultParams":
        if self.min_yield_rate_bps > self.max_yield_rate_bps:
            raise ValueError(
                f"min_yield_rate_bps {self.min_yield_rate_bps} exceeds "
                f"max_yield_rate_bps {self.max_yield_rate_bps}"
            )
        return self


class YieldVaultLedgerState(BaseModel):
    """Агрегат vault."""

    params: YieldVaultParams
    token: TokenLedgerState
    underlying_asset: str = Field(..., min_length=1, description="Актив, который принимает vault")
    rate_feed_asset: str = Field(..., min_length=1, description="Ключ оракула reference rate")
    vault: VaultState = Field(default_factory=VaultState)
    user_yield: Dict[str, UserYieldRecord] = Field(default_factory=dict)
    paused: bool = False

    model_config = {"frozen": True}

    @property
    def total_shares(self) -> int:
        return self.token.total_supply

    def total_assets(self) -> int:
        return self.vault.total_assets_held + self.vault.yield_buffer

    def yield_of(self, account: str) -> UserYieldRecord:
        return self.user_yield.get(account, UserYieldRecord())
