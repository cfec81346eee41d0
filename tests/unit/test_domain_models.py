"""
Тесты для доменных моделей: Ratio, TxContext, TokenLedger, параметры вариантов

Проверяет:
1. Семантику UNDEFINED ratio
2. Чистые операции token ledger (исходный снапшот не меняется)
3. Immutability (frozen=True)
4. Валидацию параметров на уровне Pydantic
"""

import pytest
from pydantic import ValidationError

from src.core.domain import (
    AlgorithmicCoinParams,
    PriceQuote,
    Ratio,
    ReserveCoinParams,
    TokenLedgerState,
    TokenMetadata,
    TxContext,
    UserPosition,
    YieldVaultParams,
)
from src.core.domain.token_ledger import destroy, issue, move, set_allowance, spend_allowance
from src.core.errors import InsufficientAllowance, InsufficientBalance, InvalidAmount


@pytest.fixture
def ledger() -> TokenLedgerState:
    """Ledger с 100 токенами у alice."""
    return issue(TokenLedgerState(metadata=TokenMetadata(name="Vlt USD", symbol="vltUSD")), "alice", 100)


# =============================================================================
# RATIO
# =============================================================================


class TestRatio:
    """Тесты для Ratio"""

    def test_undefined_never_below_threshold(self) -> None:
        """Позиция без долга не ликвидируется ни при каком пороге"""
        ratio = Ratio.undefined()
        assert ratio.is_undefined
        assert not ratio.is_below(10**9)
        assert ratio.meets(10**9)

    def test_value_comparisons(self) -> None:
        ratio = Ratio.of(12_500)
        assert ratio.is_below(13_000)
        assert not ratio.is_below(12_500)
        assert ratio.meets(12_500)
        assert not ratio.meets(14_000)

    def test_invalid_construction(self) -> None:
        with pytest.raises(ValueError):
            Ratio.of(-1)

    def test_str(self) -> None:
        assert str(Ratio.of(15_000)) == "Ratio(15000 bps)"
        assert str(Ratio.undefined()) == "Ratio(undefined)"


# =============================================================================
# TX CONTEXT
# =============================================================================


def test_tx_context_rejects_empty_caller() -> None:
    with pytest.raises(ValueError, match="caller"):
        TxContext(caller="", timestamp=1)


def test_tx_context_rejects_negative_timestamp() -> None:
    with pytest.raises(ValueError, match="timestamp"):
        TxContext(caller="alice", timestamp=-1)


# =============================================================================
# TOKEN LEDGER
# =============================================================================


class TestTokenLedger:
    """Тесты чистых операций token ledger"""

    def test_issue_updates_supply(self, ledger: TokenLedgerState) -> None:
        assert ledger.total_supply == 100
        assert ledger.balance_of("alice") == 100
        assert ledger.metadata.decimals == 18

    def test_operations_do_not_mutate_input(self, ledger: TokenLedgerState) -> None:
        """Исходный снапшот остаётся неизменным"""
        moved = move(ledger, "alice", "bob", 40)
        assert moved.balance_of("bob") == 40
        assert ledger.balance_of("alice") == 100
        assert ledger.balance_of("bob") == 0

    def test_destroy_insufficient_balance(self, ledger: TokenLedgerState) -> None:
        with pytest.raises(InsufficientBalance):
            destroy(ledger, "alice", 101)

    def test_destroy_reduces_supply(self, ledger: TokenLedgerState) -> None:
        burned = destroy(ledger, "alice", 30)
        assert burned.total_supply == 70
        assert burned.balance_of("alice") == 70

    def test_zero_amounts_rejected(self, ledger: TokenLedgerState) -> None:
        with pytest.raises(InvalidAmount):
            issue(ledger, "alice", 0)
        with pytest.raises(InvalidAmount):
            move(ledger, "alice", "bob", 0)

    def test_spend_allowance(self, ledger: TokenLedgerState) -> None:
        approved = set_allowance(ledger, "alice", "bob", 50)
        spent = spend_allowance(approved, "alice", "bob", 20)
        assert spent.allowance("alice", "bob") == 30
        with pytest.raises(InsufficientAllowance):
            spend_allowance(spent, "alice", "bob", 31)

    def test_owner_spends_without_allowance(self, ledger: TokenLedgerState) -> None:
        assert spend_allowance(ledger, "alice", "alice", 100) is ledger

    def test_ledger_is_frozen(self, ledger: TokenLedgerState) -> None:
        with pytest.raises(ValidationError, match="frozen"):
            ledger.total_supply = 0


# =============================================================================
# MODELS
# =============================================================================


def test_price_quote_requires_positive_value() -> None:
    with pytest.raises(ValidationError, match="greater than 0"):
        PriceQuote(value=0, observed_at=1, sequence=1)


def test_price_quote_age() -> None:
    quote = PriceQuote(value=1, observed_at=100, sequence=1)
    assert quote.age(160) == 60
    assert quote.age(50) == 0


def test_reserve_params_defaults() -> None:
    params = ReserveCoinParams()
    assert params.min_collateral_ratio_bps == 14_000
    assert params.mint_limit_per_user is None


def test_algorithmic_params_threshold_must_be_below_minimum() -> None:
    """Буферная зона между threshold и min ratio обязательна"""
    with pytest.raises(ValidationError, match="must be below"):
        AlgorithmicCoinParams(min_collateral_ratio_bps=13_000, liquidation_threshold_bps=13_000)


def test_vault_params_bounds_order() -> None:
    with pytest.raises(ValidationError, match="exceeds"):
        YieldVaultParams(min_yield_rate_bps=500, max_yield_rate_bps=100)


def test_user_position_entries() -> None:
    position = UserPosition().with_entry("ETH", 10, 5).with_entry("stETH", 3, 1)
    assert position.collateral("ETH") == 10
    assert position.debt("stETH") == 1
    assert position.total_debt == 6
    with pytest.raises(ValueError):
        position.with_entry("ETH", -1, 0)
