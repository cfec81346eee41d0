"""
Тесты AccessPolicy

Проверяет:
1. Начальные роли администратора
2. Grant/revoke только с DEFAULT_ADMIN
3. Идемпотентность grant/revoke (без событий)
4. Renounce собственной роли
"""

import pytest

from src.access import AccessPolicy, Role
from src.core.domain import EventType, TxContext
from src.core.errors import AuthorizationError, Unauthorized
from src.core.event_log import EventLog


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def policy(events: EventLog) -> AccessPolicy:
    return AccessPolicy("admin", initial_roles=[Role.MINTER], event_log=events)


def tx(caller: str, timestamp: int = 1_000) -> TxContext:
    return TxContext(caller=caller, timestamp=timestamp)


def test_initial_admin_roles(policy: AccessPolicy) -> None:
    assert policy.has_role(Role.DEFAULT_ADMIN, "admin")
    assert policy.has_role(Role.MINTER, "admin")
    assert not policy.has_role(Role.BURNER, "admin")


def test_check_raises_unauthorized(policy: AccessPolicy) -> None:
    with pytest.raises(Unauthorized) as exc_info:
        policy.check(Role.MINTER, "mallory")
    assert exc_info.value.account == "mallory"
    assert exc_info.value.role == "MINTER"
    assert isinstance(exc_info.value, AuthorizationError)
    assert exc_info.value.category == "authorization"


def test_grant_role_emits_event(policy: AccessPolicy, events: EventLog) -> None:
    policy.grant_role(tx("admin"), Role.KYC_OPERATOR, "operator")

    assert policy.has_role(Role.KYC_OPERATOR, "operator")
    event = events.last()
    assert event.event_type == EventType.ROLE_GRANTED
    assert event.primary_actor == "operator"
    assert event.secondary_asset == "KYC_OPERATOR"
    assert event.resulting_total == 1


def test_grant_requires_default_admin(policy: AccessPolicy) -> None:
    with pytest.raises(Unauthorized):
        policy.grant_role(tx("mallory"), Role.MINTER, "mallory")
    assert not policy.has_role(Role.MINTER, "mallory")


def test_grant_is_idempotent(policy: AccessPolicy, events: EventLog) -> None:
    policy.grant_role(tx("admin"), Role.MINTER, "admin")
    assert len(events) == 0


def test_revoke_role(policy: AccessPolicy, events: EventLog) -> None:
    policy.grant_role(tx("admin"), Role.BURNER, "bob")
    policy.revoke_role(tx("admin"), Role.BURNER, "bob")

    assert not policy.has_role(Role.BURNER, "bob")
    assert events.last().event_type == EventType.ROLE_REVOKED

    # Повторный revoke: no-op
    policy.revoke_role(tx("admin"), Role.BURNER, "bob")
    assert len(events) == 2


def test_renounce_role(policy: AccessPolicy) -> None:
    policy.grant_role(tx("admin"), Role.LIQUIDATOR, "keeper")
    policy.renounce_role(tx("keeper"), Role.LIQUIDATOR)
    assert policy.members(Role.LIQUIDATOR) == frozenset()


def test_assignment_snapshot_is_immutable(policy: AccessPolicy) -> None:
    """Снапшот назначения не меняется последующими grant"""
    before = policy.assignment
    policy.grant_role(tx("admin"), Role.OPERATOR, "ops")
    assert not before.holds(Role.OPERATOR, "ops")
    assert policy.assignment.holds(Role.OPERATOR, "ops")
