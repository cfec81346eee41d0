"""PriceOracle — валидация и выдача цен из зарегистрированных feeds.

Проверки на каждое чтение:
- feed зарегистрирован → иначе UnknownAsset
- value > 0 → иначе InvalidQuote
- answered_in_round >= sequence → иначе InvalidQuote (частично обновлённый feed)
- updated_at != 0 → иначе InvalidQuote (раунд не завершён)

Staleness проверяется только с явно переданным max_age. Пороги из
OracleConfig (heartbeat, deviation, staleness_threshold) — advisory
метаданные, которые читают вызывающие компоненты.
"""

import logging
from typing import Dict, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, model_validator

from src.access.policy import AccessPolicy, Role
from src.core.domain.events import EventType, IssuanceEvent
from src.core.domain.quote import PriceQuote
from src.core.domain.tx import TxContext
from src.core.domain.units import BPS_SCALE
from src.core.errors import (
    BatchLengthMismatch,
    InvalidConfiguration,
    InvalidQuote,
    IssuanceError,
    StalePrice,
    UnknownAsset,
)
from src.core.event_log import EventLog
from src.core.math.fixed_point import abs_diff, mul_div
from src.oracle.feeds import FeedSource

logger = logging.getLogger(__name__)


class OracleConfig(BaseModel):
    """Advisory пороги оракула."""

    heartbeat: int = Field(3_600, gt=0, description="Ожидаемый интервал обновления feed (sec)")
    min_deviation_bps: int = Field(50, ge=0, description="Минимальное значимое отклонение")
    max_deviation_bps: int = Field(1_000, ge=0, description="Максимальное допустимое отклонение")
    staleness_threshold: int = Field(3_600, gt=0, description="Рекомендуемый max_age (sec)")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_deviation_bounds(self) -> "OracleConfig":
        if self.min_deviation_bps > self.max_deviation_bps:
            raise ValueError(
                f"min_deviation_bps {self.min_deviation_bps} exceeds "
                f"max_deviation_bps {self.max_deviation_bps}"
            )
        return self


class PriceOracle:
    """Реестр asset -> feed и валидация котировок."""

    def __init__(
        self,
        feed_source: FeedSource,
        owner: str,
        config: Optional[OracleConfig] = None,
        event_log: Optional[EventLog] = None,
    ):
        """
        Args:
            feed_source: внешний источник раундов
            owner: аккаунт с DEFAULT_ADMIN на оракуле
            config: advisory пороги
            event_log: журнал событий
        """
        self.feed_source = feed_source
        self.events = event_log or EventLog()
        self.access = AccessPolicy(initial_admin=owner, event_log=self.events)
        self._config = config or OracleConfig()
        self._feeds: Dict[str, str] = {}

    # =========================================================================
    # READ
    # =========================================================================

    @property
    def config(self) -> OracleConfig:
        return self._config

    def feed_of(self, asset: str) -> Optional[str]:
        return self._feeds.get(asset)

    def has_feed(self, asset: str) -> bool:
        return asset in self._feeds

    def get_price(self, asset: str) -> PriceQuote:
        """
        Текущая провалидированная котировка актива.

        Raises:
            UnknownAsset: Если feed не зарегистрирован
            InvalidQuote: Если раунд невалиден
        """
        feed_id = self._feeds.get(asset)
        if feed_id is None:
            raise UnknownAsset(asset)

        try:
            feed_round = self.feed_source.latest_quote(feed_id)
        except IssuanceError:
            raise
        except Exception as e:
            raise InvalidQuote(f"Feed {feed_id!r} for {asset!r} failed: {e}") from e

        if feed_round.value <= 0:
            raise InvalidQuote(f"Non-positive price {feed_round.value} for {asset!r}")
        if feed_round.answered_in_round < feed_round.sequence:
            raise InvalidQuote(
                f"Stale round for {asset!r}: answered_in_round={feed_round.answered_in_round} "
                f"< sequence={feed_round.sequence}"
            )
        if feed_round.updated_at == 0:
            raise InvalidQuote(f"Incomplete round {feed_round.sequence} for {asset!r}")

        return PriceQuote(
            value=feed_round.value,
            observed_at=feed_round.updated_at,
            sequence=feed_round.sequence,
        )

    def get_price_with_staleness_check(self, asset: str, max_age: int, now: int) -> PriceQuote:
        """
        Котировка с проверкой возраста.

        Raises:
            StalePrice: Если now - observed_at > max_age
        """
        quote = self.get_price(asset)
        age = now - quote.observed_at
        if age > max_age:
            raise StalePrice(asset, age, max_age)
        return quote

    def get_deviation(self, asset: str, reference_price: int) -> int:
        """
        Отклонение текущей цены от reference в bps.

        |current - reference| * 10000 / reference; 0 при reference == 0.
        """
        if reference_price == 0:
            return 0
        current = self.get_price(asset).value
        return mul_div(abs_diff(current, reference_price), BPS_SCALE, reference_price)

    def is_price_stale(self, asset: str, now: int) -> bool:
        """Advisory: старше ли котировка staleness_threshold. Не бросает StalePrice."""
        quote = self.get_price(asset)
        return now - quote.observed_at > self._config.staleness_threshold

    # =========================================================================
    # ADMIN
    # =========================================================================

    def set_price_feed(self, tx: TxContext, asset: str, feed_id: str) -> None:
        """Регистрация/замена feed (идемпотентная перезапись)."""
        self.access.check(Role.DEFAULT_ADMIN, tx.caller)
        self._validate_feed_entry(asset, feed_id)
        self._feeds = {**self._feeds, asset: feed_id}
        self._publish_feed_update(tx, [(asset, feed_id)])

    def set_price_feeds(self, tx: TxContext, assets: Sequence[str], feed_ids: Sequence[str]) -> None:
        """
        Атомарная batch регистрация.

        Raises:
            BatchLengthMismatch: до любой мутации
        """
        self.access.check(Role.DEFAULT_ADMIN, tx.caller)
        if len(assets) != len(feed_ids):
            raise BatchLengthMismatch(
                f"assets ({len(assets)}) and feed_ids ({len(feed_ids)}) length mismatch"
            )
        for asset, feed_id in zip(assets, feed_ids):
            self._validate_feed_entry(asset, feed_id)

        self._feeds = {**self._feeds, **dict(zip(assets, feed_ids))}
        self._publish_feed_update(tx, list(zip(assets, feed_ids)))

    def remove_price_feed(self, tx: TxContext, asset: str) -> None:
        self.access.check(Role.DEFAULT_ADMIN, tx.caller)
        if asset not in self._feeds:
            raise UnknownAsset(asset)
        self._feeds = {key: value for key, value in self._feeds.items() if key != asset}
        self._publish_feed_update(tx, [(asset, None)])

    def set_config(self, tx: TxContext, **changes: int) -> OracleConfig:
        """
        Обновление advisory порогов.

        Raises:
            InvalidConfiguration: Если новые значения не проходят валидацию
        """
        self.access.check(Role.DEFAULT_ADMIN, tx.caller)
        try:
            config = OracleConfig.model_validate({**self._config.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidConfiguration(f"Invalid oracle config: {e}") from e

        self._config = config
        logger.info("oracle config updated by %s: %s", tx.caller, config)
        self.events.publish([
            IssuanceEvent(
                event_type=EventType.ORACLE_CONFIG_UPDATED,
                primary_actor=tx.caller,
                amount=config.staleness_threshold,
                secondary_asset=None,
                secondary_amount=config.heartbeat,
                resulting_total=len(self._feeds),
                timestamp=tx.timestamp,
            )
        ])
        return config

    @staticmethod
    def _validate_feed_entry(asset: str, feed_id: str) -> None:
        if not asset or not feed_id:
            raise InvalidConfiguration(f"Empty asset or feed id: asset={asset!r}, feed_id={feed_id!r}")

    def _publish_feed_update(self, tx: TxContext, entries: list[tuple[str, Optional[str]]]) -> None:
        logger.info("price feeds updated by %s: %s", tx.caller, entries)
        self.events.publish([
            IssuanceEvent(
                event_type=EventType.PRICE_FEED_UPDATED,
                primary_actor=tx.caller,
                amount=0,
                secondary_asset=asset,
                secondary_amount=None,
                resulting_total=len(self._feeds),
                timestamp=tx.timestamp,
            )
            for asset, _ in entries
        ])
