"""
IssuanceEvent — запись для внешних наблюдателей и индексаторов

Каждая state-changing операция публикует одну или несколько записей
фиксированной схемы (contracts/schema/issuance_event.json):

    {eventType, primaryActor, amount, secondaryAsset,
     secondaryAmount, resultingTotal, timestamp}
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Тип события."""

    # Reserve coin
    MINT = "MINT"
    BURN = "BURN"
    TRANSFER = "TRANSFER"
    APPROVAL = "APPROVAL"
    KYC_STATUS_UPDATED = "KYC_STATUS_UPDATED"
    BLACKLIST_STATUS_UPDATED = "BLACKLIST_STATUS_UPDATED"
    COLLATERAL_SUPPORT_UPDATED = "COLLATERAL_SUPPORT_UPDATED"

    # Algorithmic coin
    MINT_WITH_COLLATERAL = "MINT_WITH_COLLATERAL"
    BURN_FOR_COLLATERAL = "BURN_FOR_COLLATERAL"
    LIQUIDATION = "LIQUIDATION"
    LSD_SUPPORT_UPDATED = "LSD_SUPPORT_UPDATED"
    STAKING_REWARDS_ACCRUED = "STAKING_REWARDS_ACCRUED"
    STAKING_REWARDS_HARVESTED = "STAKING_REWARDS_HARVESTED"

    # Yield vault
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    YIELD_ACCRUED = "YIELD_ACCRUED"
    YIELD_CLAIMED = "YIELD_CLAIMED"
    YIELD_RATE_UPDATED = "YIELD_RATE_UPDATED"

    # Administrative
    PARAMS_UPDATED = "PARAMS_UPDATED"
    PAUSED = "PAUSED"
    UNPAUSED = "UNPAUSED"
    ROLE_GRANTED = "ROLE_GRANTED"
    ROLE_REVOKED = "ROLE_REVOKED"
    PRICE_FEED_UPDATED = "PRICE_FEED_UPDATED"
    ORACLE_CONFIG_UPDATED = "ORACLE_CONFIG_UPDATED"


class IssuanceEvent(BaseModel):
    """Структурированная запись события."""

    event_type: EventType = Field(..., description="Тип операции")
    primary_actor: str = Field(..., min_length=1, description="Основной участник")
    amount: int = Field(..., ge=0, description="Основная сумма")
    secondary_asset: Optional[str] = Field(None, description="Сопутствующий актив")
    secondary_amount: Optional[int] = Field(None, ge=0, description="Сумма сопутствующего актива")
    resulting_total: int = Field(..., ge=0, description="Итоговый агрегат после операции")
    timestamp: int = Field(..., ge=0, description="Время операции (unix sec)")

    model_config = {"frozen": True}

    def to_record(self) -> Dict[str, Any]:
        """Сериализация в wire-формат (camelCase ключи схемы)."""
        return {
            "eventType": self.event_type.value,
            "primaryActor": self.primary_actor,
            "amount": self.amount,
            "secondaryAsset": self.secondary_asset,
            "secondaryAmount": self.secondary_amount,
            "resultingTotal": self.resulting_total,
            "timestamp": self.timestamp,
        }
