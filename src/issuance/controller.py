"""IssuanceController — общий каркас операций всех вариантов.

Каждая внешняя операция:
1. Проверяет AccessPolicy и pause
2. Ставит non-reentrant флаг (если двигает custody)
3. Читает цены оракула — один снапшот на операцию
4. Планирует новый снапшот состояния через аккаунтант
5. Выполняет custody перевод
6. Commit: подменяет снапшот и публикует события

Любая ошибка на шагах 1-6 оставляет состояние нетронутым: мутации
стейджатся в новом immutable снапшоте, а не применяются по месту, а уже
выполненные custody переводы откатываются. Пока идёт custody перевод,
commit запрещён: callback получателя не может изменить состояние
контроллера ни через одну операцию.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ValidationError

from src.access.policy import AccessPolicy, Role
from src.core.domain.events import EventType, IssuanceEvent
from src.core.domain.quote import PriceQuote, PriceReader
from src.core.domain.tx import TxContext
from src.core.errors import (
    CustodyTransferFailed,
    InvalidAmount,
    InvalidConfiguration,
    IssuanceError,
    OperationPaused,
    ReentrantCall,
)
from src.core.event_log import EventLog
from src.core.math.fixed_point import validate_non_negative
from src.issuance.custody import CustodyGateway
from src.oracle.price_oracle import PriceOracle

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT", bound=BaseModel)
ParamsT = TypeVar("ParamsT", bound=BaseModel)


class CustodyMove(str, Enum):
    """Направление выполненного custody перевода."""

    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class ControllerConfig:
    """
    Статическая конфигурация контроллера.

    max_price_age — max_age, который контроллер передаёт оракулу при каждом
    чтении цены; None отключает проверку staleness.
    """

    max_price_age: Optional[int] = 3_600


class IssuanceController(Generic[StateT]):
    """Базовый контроллер: pause, reentrancy guard, price snapshot, commit."""

    PAUSER_ROLE: Role = Role.DEFAULT_ADMIN

    def __init__(
        self,
        state: StateT,
        access: AccessPolicy,
        oracle: PriceOracle,
        custody: CustodyGateway,
        event_log: Optional[EventLog] = None,
        config: Optional[ControllerConfig] = None,
    ):
        self._state = state
        self.access = access
        self.oracle = oracle
        self.custody = custody
        self.events = event_log or access.events
        self.config = config or ControllerConfig()
        self._entered = False
        self._in_custody_call = False
        self._custody_moves: List[Tuple[CustodyMove, str, str, int]] = []

    @property
    def state(self) -> StateT:
        return self._state

    @property
    def paused(self) -> bool:
        return self._state.paused

    # =========================================================================
    # GUARDS
    # =========================================================================

    def _require_role(self, role: Role, tx: TxContext) -> None:
        self.access.check(role, tx.caller)

    def _require_not_paused(self) -> None:
        if self._state.paused:
            raise OperationPaused("Operation attempted while paused")

    @staticmethod
    def _require_amounts(**amounts: int) -> None:
        """
        Raises:
            InvalidAmount: Если сумма не целое или отрицательная
        """
        for name, value in amounts.items():
            try:
                validate_non_negative(value, name)
            except (TypeError, ValueError) as e:
                raise InvalidAmount(str(e)) from e

    @contextmanager
    def _non_reentrant(self) -> Iterator[None]:
        """
        Флаг in-progress: ставится до любой мутации, снимается на любом выходе.

        Если операция прерывается после custody перевода, выполненные
        переводы откатываются в обратном порядке.
        """
        if self._entered:
            raise ReentrantCall(f"Reentrant call into {type(self).__name__}")
        self._entered = True
        self._custody_moves = []
        try:
            yield
        except Exception:
            self._unwind_custody()
            raise
        finally:
            self._entered = False
            self._custody_moves = []

    @contextmanager
    def _operation(self, name: str, tx: TxContext) -> Iterator[None]:
        """Логирование отказов операции; ошибка пробрасывается дальше."""
        try:
            yield
        except IssuanceError as e:
            logger.debug("%s by %s aborted: %s (%s)", name, tx.caller, e.code, e.message)
            raise

    # =========================================================================
    # PRICES
    # =========================================================================

    def _price_reader(self, now: int) -> PriceReader:
        """
        Reader с кэшем на время одной операции.

        Повторное чтение того же ключа в рамках операции возвращает тот же
        снапшот котировки.
        """
        snapshot: Dict[str, PriceQuote] = {}
        max_age = self.config.max_price_age

        def read(asset: str) -> PriceQuote:
            if asset not in snapshot:
                if max_age is None:
                    snapshot[asset] = self.oracle.get_price(asset)
                else:
                    snapshot[asset] = self.oracle.get_price_with_staleness_check(asset, max_age, now)
            return snapshot[asset]

        return read

    # =========================================================================
    # CUSTODY
    # =========================================================================

    @contextmanager
    def _external_call(self) -> Iterator[None]:
        """Пока идёт перевод, любой commit этого контроллера запрещён."""
        self._in_custody_call = True
        try:
            yield
        finally:
            self._in_custody_call = False

    def _pull(self, asset: str, sender: str, amount: int) -> None:
        try:
            with self._external_call():
                self.custody.transfer_in(asset, sender, amount)
        except IssuanceError:
            raise
        except Exception as e:
            raise CustodyTransferFailed(f"transfer_in {amount} {asset} from {sender!r} failed: {e}") from e
        self._custody_moves.append((CustodyMove.IN, asset, sender, amount))

    def _push(self, asset: str, recipient: str, amount: int) -> None:
        if amount == 0:
            return
        try:
            with self._external_call():
                self.custody.transfer_out(asset, recipient, amount)
        except IssuanceError:
            raise
        except Exception as e:
            raise CustodyTransferFailed(f"transfer_out {amount} {asset} to {recipient!r} failed: {e}") from e
        self._custody_moves.append((CustodyMove.OUT, asset, recipient, amount))

    def _unwind_custody(self) -> None:
        moves, self._custody_moves = self._custody_moves, []
        for direction, asset, account, amount in reversed(moves):
            try:
                with self._external_call():
                    if direction is CustodyMove.IN:
                        self.custody.transfer_out(asset, account, amount)
                    else:
                        self.custody.transfer_in(asset, account, amount)
            except Exception:
                # Исходная ошибка операции всё равно пробрасывается вызывающему
                logger.exception("custody unwind failed: %s %d %s (%r)", direction.value, amount, asset, account)

    # =========================================================================
    # COMMIT
    # =========================================================================

    def _commit(self, new_state: StateT, events: Iterable[IssuanceEvent]) -> None:
        """
        Подмена снапшота и публикация событий.

        Raises:
            ReentrantCall: commit из callback во время custody перевода
            jsonschema.ValidationError: событие не соответствует контракту
                (снапшот не подменяется)
        """
        if self._in_custody_call:
            raise ReentrantCall(f"State change in {type(self).__name__} during a custody transfer")
        batch = list(events)
        self.events.validate(batch)
        self._state = new_state
        self._custody_moves = []
        self.events.publish(batch)

    @staticmethod
    def _event(
        event_type: EventType,
        tx: TxContext,
        amount: int,
        resulting_total: int,
        primary_actor: Optional[str] = None,
        secondary_asset: Optional[str] = None,
        secondary_amount: Optional[int] = None,
    ) -> IssuanceEvent:
        return IssuanceEvent(
            event_type=event_type,
            primary_actor=primary_actor or tx.caller,
            amount=amount,
            secondary_asset=secondary_asset,
            secondary_amount=secondary_amount,
            resulting_total=resulting_total,
            timestamp=tx.timestamp,
        )

    @staticmethod
    def _validated_params(current: ParamsT, changes: dict) -> ParamsT:
        """
        Новые параметры поверх текущих с полной pydantic валидацией.

        Raises:
            InvalidConfiguration: Если параметры не проходят валидацию
        """
        unknown = set(changes) - set(type(current).model_fields)
        if unknown:
            raise InvalidConfiguration(f"Unknown parameters: {sorted(unknown)}")
        try:
            return type(current).model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidConfiguration(f"Invalid parameters: {e}") from e

    # =========================================================================
    # PAUSE
    # =========================================================================

    def pause(self, tx: TxContext) -> None:
        self._require_role(self.PAUSER_ROLE, tx)
        if self._state.paused:
            return
        logger.warning("%s paused by %s", type(self).__name__, tx.caller)
        self._commit(
            self._state.model_copy(update={"paused": True}),
            [self._event(EventType.PAUSED, tx, amount=0, resulting_total=0)],
        )

    def unpause(self, tx: TxContext) -> None:
        self._require_role(self.PAUSER_ROLE, tx)
        if not self._state.paused:
            return
        logger.warning("%s unpaused by %s", type(self).__name__, tx.caller)
        self._commit(
            self._state.model_copy(update={"paused": False}),
            [self._event(EventType.UNPAUSED, tx, amount=0, resulting_total=0)],
        )
