"""
Тесты VaultAccountant (yield vault)

Проверяет:
1. Previews и направление округления
2. Начисление ровно одного периода за вызов
3. Атрибуцию buffer и инвариант сохранения yield
4. Выход: allowance, InsufficientLiquidity, claim
"""

import pytest

from src.accounting import VaultAccountant
from src.core.domain import (
    SECONDS_PER_DAY,
    SECONDS_PER_YEAR,
    TokenLedgerState,
    TokenMetadata,
    VaultState,
    YieldVaultLedgerState,
    YieldVaultParams,
)
from src.core.errors import InsufficientAllowance, InsufficientLiquidity, InvalidAmount

E18 = 10**18
DAY = SECONDS_PER_DAY


def one_period(total_assets: int, rate_bps: int) -> int:
    return total_assets * rate_bps * DAY // (SECONDS_PER_YEAR * 10_000)


def conserved(state: YieldVaultLedgerState) -> bool:
    """sum(earned) + buffer + claimed == accrued"""
    vault = state.vault
    earned = sum(record.earned for record in state.user_yield.values())
    return earned + vault.yield_buffer + vault.total_yield_claimed == vault.total_yield_accrued


@pytest.fixture
def accountant() -> VaultAccountant:
    return VaultAccountant()


@pytest.fixture
def state() -> YieldVaultLedgerState:
    return YieldVaultLedgerState(
        params=YieldVaultParams(),
        token=TokenLedgerState(metadata=TokenMetadata(name="Vlt USDY", symbol="vltUSDY")),
        underlying_asset="USDC",
        rate_feed_asset="T-BILL",
        vault=VaultState(yield_rate_bps=300),
    )


@pytest.fixture
def funded(accountant, state) -> YieldVaultLedgerState:
    """alice: 500 assets, 500 shares на t=0."""
    return accountant.plan_deposit(state, "alice", 500 * E18, 0).new_state


# =============================================================================
# PREVIEWS
# =============================================================================


class TestPreviews:
    """Тесты previews"""

    def test_empty_vault_is_one_to_one(self, accountant, state) -> None:
        assert accountant.preview_deposit(state, 123) == 123
        assert accountant.preview_mint(state, 123) == 123

    def test_empty_vault_exits_are_zero(self, accountant, state) -> None:
        assert accountant.preview_withdraw(state, 123) == 0
        assert accountant.preview_redeem(state, 123) == 0

    def test_rounding_favours_vault(self, accountant, funded) -> None:
        """3 shares на 2 assets: deposit/redeem вниз, mint/withdraw вверх"""
        skewed = funded.model_copy(
            update={"vault": funded.vault.model_copy(update={"total_assets_held": 2}),
                    "token": funded.token.model_copy(update={"total_supply": 3})}
        )
        assert accountant.preview_deposit(skewed, 1) == 1
        assert accountant.preview_mint(skewed, 1) == 1
        assert accountant.preview_redeem(skewed, 1) == 0
        assert accountant.preview_withdraw(skewed, 1) == 2

    def test_max_views(self, accountant, funded) -> None:
        assert accountant.max_redeem(funded, "alice") == 500 * E18
        assert accountant.max_withdraw(funded, "alice") == 500 * E18
        assert accountant.max_redeem(funded, "bob") == 0


# =============================================================================
# ACCRUAL
# =============================================================================


class TestAccrual:
    """Тесты начисления"""

    def test_no_accrual_before_period(self, accountant, funded) -> None:
        staged, accrued = accountant.accrue(funded, DAY - 1)
        assert accrued == 0
        assert staged is funded

    def test_single_period_even_after_long_gap(self, accountant, funded) -> None:
        """За один вызов начисляется ровно один период"""
        staged, accrued = accountant.accrue(funded, 10 * DAY)
        assert accrued == one_period(500 * E18, 300)
        assert staged.vault.yield_buffer == accrued
        assert staged.vault.last_accrual == 10 * DAY

    def test_empty_vault_advances_clock(self, accountant, state) -> None:
        staged, accrued = accountant.accrue(state, DAY)
        assert accrued == 0
        assert staged.vault.last_accrual == DAY

    def test_rate_from_quote_and_clamp(self, accountant, state) -> None:
        # 5% годовых в формате 1e8
        assert accountant.rate_from_quote(5_000_000) == 500
        assert accountant.clamp_rate(5_000, state.params) == 2_000


# =============================================================================
# ATTRIBUTION / CONSERVATION
# =============================================================================


class TestAttribution:
    """Тесты атрибуции и сохранения yield"""

    def test_attribution_moves_buffer_to_user(self, accountant, funded) -> None:
        staged, accrued = accountant.accrue(funded, DAY)
        attributed_state, share = accountant.attribute(staged, "alice", DAY)
        assert share == accrued
        assert attributed_state.vault.yield_buffer == 0
        assert attributed_state.yield_of("alice").earned == accrued
        assert conserved(attributed_state)

    def test_pro_rata_between_holders(self, accountant, funded) -> None:
        both = accountant.plan_deposit(funded, "bob", 500 * E18, 0).new_state
        staged, accrued = accountant.accrue(both, DAY)
        staged, alice_share = accountant.attribute(staged, "alice", DAY)
        assert alice_share == accrued // 2
        assert conserved(staged)

    def test_conservation_across_operations(self, accountant, funded) -> None:
        state = accountant.plan_deposit(funded, "bob", 200 * E18, DAY).new_state
        state = accountant.plan_redeem(state, "alice", "alice", 100 * E18, 2 * DAY).new_state
        state = accountant.plan_claim(state, "alice", 3 * DAY).new_state
        assert state.vault.total_yield_accrued > 0
        assert conserved(state)


# =============================================================================
# EXIT / CLAIM
# =============================================================================


class TestExit:
    """Тесты выхода и claim"""

    def test_redeem(self, accountant, funded) -> None:
        plan = accountant.plan_redeem(funded, "alice", "alice", 100 * E18, 1)
        assert plan.assets == 100 * E18
        assert plan.new_state.token.balance_of("alice") == 400 * E18
        assert plan.new_state.vault.total_assets_held == 400 * E18

    def test_third_party_withdraw_spends_allowance(self, accountant, funded) -> None:
        with pytest.raises(InsufficientAllowance):
            accountant.plan_withdraw(funded, "bob", "alice", 10 * E18, 1)

    def test_withdraw_beyond_held_assets(self, accountant, funded) -> None:
        """Buffer входит в total_assets, но не в реальную ликвидность"""
        staged = funded.model_copy(update={"vault": funded.vault.model_copy(update={"yield_buffer": 100 * E18})})
        with pytest.raises(InsufficientLiquidity):
            accountant.plan_withdraw(staged, "alice", "alice", 550 * E18, 1)

    def test_zero_amounts(self, accountant, funded) -> None:
        with pytest.raises(InvalidAmount):
            accountant.plan_deposit(funded, "alice", 0, 1)
        with pytest.raises(InvalidAmount):
            accountant.plan_redeem(funded, "alice", "alice", 0, 1)

    def test_claim_nothing_owed(self, accountant, funded) -> None:
        assert accountant.plan_claim(funded, "alice", 1) is None

    def test_claim_pays_from_held_assets(self, accountant, funded) -> None:
        plan = accountant.plan_claim(funded, "alice", DAY)
        expected = one_period(500 * E18, 300)
        assert plan.amount == expected
        assert plan.accrued == expected
        assert plan.new_state.vault.total_assets_held == 500 * E18 - expected
        assert plan.new_state.vault.total_yield_claimed == expected
        assert plan.new_state.yield_of("alice").earned == 0
