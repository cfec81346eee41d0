"""
PriceQuote — котировки оракула

FeedRound — сырой ответ внешнего price feed (последний раунд агрегатора).
PriceQuote — провалидированная котировка, которую оракул отдаёт ядру.
PriceQuote живёт только в рамках одной операции и нигде не сохраняется.
"""

from typing import Callable

from pydantic import BaseModel, Field


class FeedRound(BaseModel):
    """
    Ответ price feed: latest_quote(feed_id).

    Значения не валидируются на уровне модели — невалидный раунд
    (value <= 0, answered_in_round < sequence) должен дойти до оракула
    и быть отклонён там с InvalidQuote.
    """

    sequence: int = Field(..., description="Идентификатор раунда")
    value: int = Field(..., description="Цена (1e8), может быть невалидной")
    updated_at: int = Field(..., description="Время обновления раунда (unix sec)")
    answered_in_round: int = Field(..., description="Раунд, в котором получен ответ")

    model_config = {"frozen": True}


class PriceQuote(BaseModel):
    """Провалидированная котировка (value > 0)."""

    value: int = Field(..., gt=0, description="Цена (1e8)")
    observed_at: int = Field(..., ge=0, description="Время наблюдения (unix sec)")
    sequence: int = Field(..., ge=0, description="Монотонно неубывающий номер раунда")

    model_config = {"frozen": True}

    def age(self, now: int) -> int:
        """Возраст котировки в секундах (не отрицательный)."""
        return max(0, now - self.observed_at)


# Чтение котировки по ключу оракула в рамках одной операции
PriceReader = Callable[[str], PriceQuote]
