"""
Тесты PositionAccountant (algorithmic coin)

Проверяет:
1. Цену вида collateral (ETH и LSD через композицию)
2. Mint: проверка всей позиции, staking accrual
3. Burn: ratio после burn и вывода
4. Зоны ratio и ликвидацию 125% / 135%
"""

import pytest

from src.accounting import PositionAccountant
from src.core.domain import (
    ETH,
    AlgorithmicCoinParams,
    AlgorithmicCoinState,
    LSDConfig,
    PriceQuote,
    StakingState,
    TokenLedgerState,
    TokenMetadata,
)
from src.core.domain.token_ledger import issue, move
from src.core.errors import (
    CollateralNotSupported,
    InsufficientBalance,
    InsufficientCollateral,
    InsufficientDebt,
    InvalidAmount,
    InvalidCollateralRatio,
    LSDNotSupported,
    PositionNotLiquidatable,
)

E18 = 10**18
USD = 10**8


def reader(prices):
    reads = []

    def read(asset: str) -> PriceQuote:
        reads.append(asset)
        return PriceQuote(value=prices[asset], observed_at=1, sequence=1)

    read.reads = reads
    return read


@pytest.fixture
def accountant() -> PositionAccountant:
    return PositionAccountant()


@pytest.fixture
def state() -> AlgorithmicCoinState:
    return AlgorithmicCoinState(
        params=AlgorithmicCoinParams(),
        token=TokenLedgerState(metadata=TokenMetadata(name="Vlt USDe", symbol="vltUSDe")),
        eth_price_asset="ETH/USD",
        eth_supported=True,
        lsds={
            "stETH": LSDConfig(asset_id="stETH", rate_feed_asset="stETH/ETH"),
            "oldETH": LSDConfig(asset_id="oldETH", rate_feed_asset="oldETH/ETH", supported=False),
        },
        staking=StakingState(reward_rate_bps=100),
    )


@pytest.fixture
def minted(accountant, state) -> AlgorithmicCoinState:
    """alice: 1 ETH collateral, 1000 долга (ratio 200% при $2000)."""
    return accountant.plan_mint(state, "alice", 1_000 * E18, ETH, E18, reader({"ETH/USD": 2_000 * USD})).new_state


# =============================================================================
# ЦЕНЫ
# =============================================================================


def test_lsd_price_composition(accountant, state) -> None:
    prices = {"ETH/USD": 2_000 * USD, "stETH/ETH": 105_000_000}
    assert accountant.price_of_kind(state, "stETH", reader(prices)) == 2_100 * USD


def test_eth_price_direct(accountant, state) -> None:
    read = reader({"ETH/USD": 2_000 * USD})
    assert accountant.price_of_kind(state, ETH, read) == 2_000 * USD
    assert read.reads == ["ETH/USD"]


def test_ratio_undefined_without_debt(accountant) -> None:
    assert accountant.calculate_collateral_ratio(E18, 0, 2_000 * USD).is_undefined


# =============================================================================
# MINT
# =============================================================================


class TestPlanMint:
    """Тесты plan_mint"""

    def test_mint_updates_position_and_custody(self, minted: AlgorithmicCoinState) -> None:
        position = minted.position_of("alice")
        assert position.collateral(ETH) == E18
        assert position.debt(ETH) == 1_000 * E18
        assert minted.custody_of(ETH) == E18
        assert minted.token.balance_of("alice") == 1_000 * E18

    def test_staking_accrual(self, minted: AlgorithmicCoinState) -> None:
        """1% от депозита в pending rewards"""
        assert minted.staking.total_staked == E18
        assert minted.staking.pending_rewards == E18 // 100

    def test_insufficient_collateral(self, accountant, state) -> None:
        with pytest.raises(InsufficientCollateral):
            accountant.plan_mint(state, "alice", 1_000 * E18, ETH, 7 * E18 // 10 - 1, reader({"ETH/USD": 2_000 * USD}))

    def test_top_up_checks_whole_position(self, accountant, minted) -> None:
        """После падения цены доп. mint с минимальным депозитом не проходит"""
        read = reader({"ETH/USD": 1_300 * USD})
        required = accountant.required_collateral(100 * E18, 1_300 * USD, 14_000)
        with pytest.raises(InsufficientCollateral):
            accountant.plan_mint(minted, "alice", 100 * E18, ETH, required, read)

    def test_eth_disabled(self, accountant, state) -> None:
        disabled = state.model_copy(update={"eth_supported": False})
        with pytest.raises(CollateralNotSupported):
            accountant.plan_mint(disabled, "alice", E18, ETH, E18, reader({}))

    def test_unknown_and_disabled_lsd(self, accountant, state) -> None:
        with pytest.raises(LSDNotSupported):
            accountant.plan_mint(state, "alice", E18, "rETH", E18, reader({}))
        with pytest.raises(LSDNotSupported):
            accountant.plan_mint(state, "alice", E18, "oldETH", E18, reader({}))

    def test_zero_amount(self, accountant, state) -> None:
        with pytest.raises(InvalidAmount):
            accountant.plan_mint(state, "alice", 0, ETH, E18, reader({}))


# =============================================================================
# BURN
# =============================================================================


class TestPlanBurn:
    """Тесты plan_burn"""

    def test_partial_burn_and_withdraw(self, accountant, minted) -> None:
        plan = accountant.plan_burn(minted, "alice", 500 * E18, E18 // 2, ETH, reader({"ETH/USD": 2_000 * USD}))
        assert plan.remaining_debt == 500 * E18
        assert plan.resulting_ratio.value_bps == 20_000
        assert plan.new_state.custody_of(ETH) == E18 // 2
        assert plan.new_state.token.total_supply == 500 * E18

    def test_post_burn_ratio_below_minimum(self, accountant, minted) -> None:
        """Проверяется ratio ПОСЛЕ операции: 0.3 ETH под 500 долга = 120%"""
        with pytest.raises(InvalidCollateralRatio):
            accountant.plan_burn(minted, "alice", 500 * E18, 7 * E18 // 10, ETH, reader({"ETH/USD": 2_000 * USD}))

    def test_full_repayment_skips_price(self, accountant, minted) -> None:
        read = reader({})
        plan = accountant.plan_burn(minted, "alice", 1_000 * E18, E18, ETH, read)
        assert plan.resulting_ratio.is_undefined
        assert read.reads == []
        assert plan.new_state.position_of("alice").collateral(ETH) == 0

    def test_insufficient_debt(self, accountant, minted) -> None:
        with pytest.raises(InsufficientDebt):
            accountant.plan_burn(minted, "alice", 1_001 * E18, 0, ETH, reader({"ETH/USD": 2_000 * USD}))

    def test_withdraw_beyond_collateral(self, accountant, minted) -> None:
        with pytest.raises(InsufficientCollateral):
            accountant.plan_burn(minted, "alice", E18, 2 * E18, ETH, reader({"ETH/USD": 2_000 * USD}))

    def test_burn_requires_tokens(self, accountant, minted) -> None:
        """Долг есть, но токены переведены — destroy падает"""
        moved = minted.model_copy(update={"token": minted.token.model_copy(update={"balances": {"bob": 1_000 * E18}})})
        with pytest.raises(InsufficientBalance):
            accountant.plan_burn(moved, "alice", 100 * E18, 0, ETH, reader({"ETH/USD": 2_000 * USD}))


# =============================================================================
# LIQUIDATION
# =============================================================================


class TestLiquidation:
    """Тесты зон ratio и ликвидации"""

    @pytest.fixture
    def keeper_funded(self, minted) -> AlgorithmicCoinState:
        """Токены alice переданы ликвидатору keeper."""
        return minted.model_copy(update={"token": move(minted.token, "alice", "keeper", 1_000 * E18)})

    def test_liquidatable_at_125(self, accountant, minted) -> None:
        assert accountant.is_liquidatable(minted, "alice", ETH, reader({"ETH/USD": 1_250 * USD}))

    def test_buffer_zone_at_135(self, accountant, keeper_funded) -> None:
        """Между threshold и min ratio: не ликвидируется"""
        read = reader({"ETH/USD": 1_350 * USD})
        assert not accountant.is_liquidatable(keeper_funded, "alice", ETH, read)
        with pytest.raises(PositionNotLiquidatable):
            accountant.plan_liquidation(keeper_funded, "alice", ETH, read, liquidator="keeper")

    def test_no_debt_never_liquidatable(self, accountant, state) -> None:
        assert not accountant.is_liquidatable(state, "nobody", ETH, reader({}))

    def test_liquidation_split(self, accountant, keeper_funded) -> None:
        plan = accountant.plan_liquidation(
            keeper_funded, "alice", ETH, reader({"ETH/USD": 1_250 * USD}), liquidator="keeper"
        )

        assert plan.ratio.value_bps == 12_500
        assert plan.seized_collateral == E18
        assert plan.destroyed_debt == 1_000 * E18
        # 10% penalty, половина ликвидатору
        assert plan.liquidator_reward == E18 // 20
        assert plan.protocol_retained == E18 - E18 // 20

        new_state = plan.new_state
        assert new_state.position_of("alice").collateral(ETH) == 0
        assert new_state.position_of("alice").debt(ETH) == 0
        assert new_state.custody_of(ETH) == E18 - E18 // 20
        assert new_state.protocol_retained[ETH] == E18 - E18 // 20
        assert new_state.token.total_supply == 0
        assert new_state.token.balance_of("keeper") == 0

    def test_debt_repaid_from_liquidator_balance(self, accountant, minted) -> None:
        """Баланс заёмщика не участвует: alice сохраняет свои токены"""
        read = reader({"ETH/USD": 1_250 * USD})
        with pytest.raises(InsufficientBalance):
            accountant.plan_liquidation(minted, "alice", ETH, read, liquidator="keeper")

        with_keeper = minted.model_copy(update={"token": issue(minted.token, "keeper", 1_000 * E18)})
        plan = accountant.plan_liquidation(with_keeper, "alice", ETH, read, liquidator="keeper")
        assert plan.new_state.token.balance_of("alice") == 1_000 * E18
        assert plan.new_state.token.total_supply == 1_000 * E18
        assert plan.new_state.token.balance_of("keeper") == 0


def test_total_value_locked_skips_unsupported(accountant, minted) -> None:
    with_lsd = minted.model_copy(update={"custody": {ETH: E18, "stETH": 2 * E18, "oldETH": 5 * E18}})
    assert accountant.total_value_locked(with_lsd) == 3 * E18
