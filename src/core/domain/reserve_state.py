"""
ReserveCoinState — снапшот fully-collateralized stablecoin (vltUSD)

Immutable Pydantic модели:
- Asset: поддерживаемый collateral (создаётся/переключается только админом)
- UserComplianceRecord: KYC/blacklist и кумулятивные счётчики лимитов
- ReserveCoinParams: настраиваемые параметры (min ratio, лимиты)
- ReserveCoinState: агрегат, которым владеет контроллер

Все изменения создают новый экземпляр (model_copy).
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field

from src.core.domain.token_ledger import TokenLedgerState


class Asset(BaseModel):
    """
    Collateral актив.

    Никогда не удаляется — только выключается (supported=False).
    """

    asset_id: str = Field(..., min_length=1, description="Идентификатор актива")
    supported: bool = Field(..., description="Принимается ли актив как collateral")
    feed_id: Optional[str] = Field(None, description="Связанный price feed (информативно)")

    model_config = {"frozen": True}


class UserComplianceRecord(BaseModel):
    """Compliance запись пользователя. Меняется только KYC/COMPLIANCE ролями и mint/burn."""

    kyc_verified: bool = Field(False, description="Пройден ли KYC")
    blacklisted: bool = Field(False, description="Заблокирован ли пользователь")
    mint_limit_used: int = Field(0, ge=0, description="Кумулятивно выпущено на пользователя")
    burn_limit_used: int = Field(0, ge=0, description="Кумулятивно сожжено у пользователя")

    model_config = {"frozen": True}


class ReserveCoinParams(BaseModel):
    """Параметры reserve coin."""

    min_collateral_ratio_bps: int = Field(
        14_000, gt=0, description="Минимальный collateral ratio для mint (bps)"
    )
    mint_limit_per_user: Optional[int] = Field(
        None, ge=0, description="Кумулятивный лимит mint на пользователя (None = без лимита)"
    )
    burn_limit_per_user: Optional[int] = Field(
        None, ge=0, description="Кумулятивный лимит burn на пользователя (None = без лимита)"
    )

    model_config = {"frozen": True}


class ReserveCoinState(BaseModel):
    """Агрегат reserve coin."""

    params: ReserveCoinParams
    token: TokenLedgerState
    assets: Dict[str, Asset] = Field(default_factory=dict)
    reserves: Dict[str, int] = Field(default_factory=dict, description="amount_held по активу")
    total_reserves: int = Field(0, ge=0, description="Сумма amount_held по всем активам")
    compliance: Dict[str, UserComplianceRecord] = Field(default_factory=dict)
    paused: bool = False

    model_config = {"frozen": True}

    def reserve_of(self, asset: str) -> int:
        return self.reserves.get(asset, 0)

    def compliance_of(self, account: str) -> UserComplianceRecord:
        return self.compliance.get(account, UserComplianceRecord())

    def is_supported(self, asset: str) -> bool:
        record = self.assets.get(asset)
        return record is not None and record.supported
