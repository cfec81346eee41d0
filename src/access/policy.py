"""AccessPolicy — плоские наборы прав по категориям операций.

Роли независимы: нет иерархии и наследования, аккаунт может держать
любое число ролей. Grant/revoke требуют DEFAULT_ADMIN. Повторный grant
уже выданной роли (и revoke отсутствующей) — успешный no-op без события.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional

from pydantic import BaseModel, Field

from src.core.domain.events import EventType, IssuanceEvent
from src.core.domain.tx import TxContext
from src.core.errors import Unauthorized
from src.core.event_log import EventLog

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Категории прав."""

    DEFAULT_ADMIN = "DEFAULT_ADMIN"
    MINTER = "MINTER"
    BURNER = "BURNER"
    KYC_OPERATOR = "KYC_OPERATOR"
    COMPLIANCE = "COMPLIANCE"
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    YIELD_MANAGER = "YIELD_MANAGER"
    LIQUIDATOR = "LIQUIDATOR"
    STAKING_MANAGER = "STAKING_MANAGER"


class RoleAssignment(BaseModel):
    """Снапшот role -> members."""

    members: Dict[Role, FrozenSet[str]] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def holds(self, role: Role, account: str) -> bool:
        return account in self.members.get(role, frozenset())


class AccessPolicy:
    """Владелец RoleAssignment; каждая привилегированная операция сначала вызывает check()."""

    def __init__(
        self,
        initial_admin: str,
        initial_roles: Optional[Iterable[Role]] = None,
        event_log: Optional[EventLog] = None,
    ):
        """
        Args:
            initial_admin: аккаунт, получающий DEFAULT_ADMIN
            initial_roles: дополнительные роли для initial_admin
            event_log: журнал событий (общий с контроллером)
        """
        roles = {Role.DEFAULT_ADMIN, *(initial_roles or ())}
        self._assignment = RoleAssignment(
            members={role: frozenset({initial_admin}) for role in roles}
        )
        self.events = event_log or EventLog()

    @property
    def assignment(self) -> RoleAssignment:
        return self._assignment

    def has_role(self, role: Role, account: str) -> bool:
        return self._assignment.holds(role, account)

    def check(self, role: Role, account: str) -> None:
        """
        Raises:
            Unauthorized: Если account не держит role
        """
        if not self.has_role(role, account):
            raise Unauthorized(account, role.value)

    def members(self, role: Role) -> FrozenSet[str]:
        return self._assignment.members.get(role, frozenset())

    def grant_role(self, tx: TxContext, role: Role, account: str) -> None:
        self.check(Role.DEFAULT_ADMIN, tx.caller)
        if self.has_role(role, account):
            return
        self._set_members(role, self.members(role) | {account})
        self._emit(EventType.ROLE_GRANTED, tx, account, role)

    def revoke_role(self, tx: TxContext, role: Role, account: str) -> None:
        self.check(Role.DEFAULT_ADMIN, tx.caller)
        if not self.has_role(role, account):
            return
        self._set_members(role, self.members(role) - {account})
        self._emit(EventType.ROLE_REVOKED, tx, account, role)

    def renounce_role(self, tx: TxContext, role: Role) -> None:
        """Отказ от собственной роли; права администратора не требуются."""
        if not self.has_role(role, tx.caller):
            return
        self._set_members(role, self.members(role) - {tx.caller})
        self._emit(EventType.ROLE_REVOKED, tx, tx.caller, role)

    def _set_members(self, role: Role, members: FrozenSet[str]) -> None:
        self._assignment = RoleAssignment(members={**self._assignment.members, role: members})

    def _emit(self, event_type: EventType, tx: TxContext, account: str, role: Role) -> None:
        logger.info("%s %s for %s by %s", event_type.value, role.value, account, tx.caller)
        self.events.publish([
            IssuanceEvent(
                event_type=event_type,
                primary_actor=account,
                amount=0,
                secondary_asset=role.value,
                secondary_amount=None,
                resulting_total=len(self.members(role)),
                timestamp=tx.timestamp,
            )
        ])
