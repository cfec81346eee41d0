"""
Тесты CollateralLedger (reserve coin)

Проверяет:
1. required_collateral / collateral_return (включая асимметрию burn)
2. Порядок проверок plan_mint / plan_burn
3. Лимиты mint/burn на пользователя
4. Collateral ratio и total_reserves_usd
"""

import pytest

from src.accounting import CollateralLedger
from src.core.domain import (
    Asset,
    PriceQuote,
    ReserveCoinParams,
    ReserveCoinState,
    TokenLedgerState,
    TokenMetadata,
    UserComplianceRecord,
)
from src.core.errors import (
    BurnLimitExceeded,
    CollateralNotSupported,
    InsufficientCollateral,
    InvalidAmount,
    KYCNotVerified,
    MintLimitExceeded,
    StalePrice,
    UserBlacklisted,
)

E18 = 10**18
ETH_PRICE = 2_000 * 10**8


def reader(prices):
    """PriceReader поверх словаря с подсчётом чтений."""
    reads = []

    def read(asset: str) -> PriceQuote:
        reads.append(asset)
        return PriceQuote(value=prices[asset], observed_at=1, sequence=1)

    read.reads = reads
    return read


@pytest.fixture
def ledger() -> CollateralLedger:
    return CollateralLedger()


@pytest.fixture
def state() -> ReserveCoinState:
    return ReserveCoinState(
        params=ReserveCoinParams(),
        token=TokenLedgerState(metadata=TokenMetadata(name="Vlt USD", symbol="vltUSD")),
        assets={
            "WETH": Asset(asset_id="WETH", supported=True),
            "OLD": Asset(asset_id="OLD", supported=False),
        },
        compliance={
            "alice": UserComplianceRecord(kyc_verified=True),
            "eve": UserComplianceRecord(kyc_verified=True, blacklisted=True),
        },
    )


# =============================================================================
# РАСЧЁТЫ
# =============================================================================


def test_required_collateral_at_2000(ledger: CollateralLedger) -> None:
    """1000 токенов при $2000 и 140% → 0.7 WETH"""
    assert ledger.required_collateral(1_000 * E18, ETH_PRICE, 14_000) == 7 * E18 // 10


def test_collateral_return_has_no_ratio_multiplier(ledger: CollateralLedger) -> None:
    """Burn возвращает spot 1:1, без 140% множителя"""
    assert ledger.collateral_return(500 * E18, ETH_PRICE) == E18 // 4


# =============================================================================
# MINT
# =============================================================================


class TestPlanMint:
    """Тесты plan_mint"""

    def test_exact_required_passes(self, ledger, state) -> None:
        plan = ledger.plan_mint(state, "alice", 1_000 * E18, "WETH", 7 * E18 // 10, reader({"WETH": ETH_PRICE}))
        assert plan.required_collateral == 7 * E18 // 10
        assert plan.new_state.token.total_supply == 1_000 * E18
        assert plan.new_state.reserve_of("WETH") == 7 * E18 // 10
        assert plan.new_state.total_reserves == 7 * E18 // 10
        assert plan.new_state.compliance_of("alice").mint_limit_used == 1_000 * E18
        # Исходный снапшот не тронут
        assert state.token.total_supply == 0

    def test_one_below_required_fails(self, ledger, state) -> None:
        with pytest.raises(InsufficientCollateral) as exc_info:
            ledger.plan_mint(state, "alice", 1_000 * E18, "WETH", 7 * E18 // 10 - 1, reader({"WETH": ETH_PRICE}))
        assert exc_info.value.required == 7 * E18 // 10

    def test_kyc_checked_first(self, ledger, state) -> None:
        read = reader({"WETH": ETH_PRICE})
        with pytest.raises(KYCNotVerified):
            ledger.plan_mint(state, "bob", 0, "UNKNOWN", 0, read)
        assert read.reads == []

    def test_blacklisted_recipient(self, ledger, state) -> None:
        with pytest.raises(UserBlacklisted):
            ledger.plan_mint(state, "eve", E18, "WETH", E18, reader({"WETH": ETH_PRICE}))

    def test_unsupported_asset(self, ledger, state) -> None:
        with pytest.raises(CollateralNotSupported):
            ledger.plan_mint(state, "alice", E18, "OLD", E18, reader({"OLD": ETH_PRICE}))

    def test_zero_amount(self, ledger, state) -> None:
        with pytest.raises(InvalidAmount):
            ledger.plan_mint(state, "alice", 0, "WETH", E18, reader({"WETH": ETH_PRICE}))

    def test_mint_limit_is_cumulative(self, ledger, state) -> None:
        limited = state.model_copy(update={"params": ReserveCoinParams(mint_limit_per_user=1_500 * E18)})
        read = reader({"WETH": ETH_PRICE})
        plan = ledger.plan_mint(limited, "alice", 1_000 * E18, "WETH", E18, read)
        with pytest.raises(MintLimitExceeded):
            ledger.plan_mint(plan.new_state, "alice", 501 * E18, "WETH", E18, read)


# =============================================================================
# BURN
# =============================================================================


class TestPlanBurn:
    """Тесты plan_burn"""

    @pytest.fixture
    def minted(self, ledger, state) -> ReserveCoinState:
        return ledger.plan_mint(state, "alice", 1_000 * E18, "WETH", E18, reader({"WETH": ETH_PRICE})).new_state

    def test_burn_returns_spot_collateral(self, ledger, minted) -> None:
        plan = ledger.plan_burn(minted, "alice", 500 * E18, "WETH", reader({"WETH": ETH_PRICE}))
        assert plan.collateral_return == E18 // 4
        assert plan.new_state.token.balance_of("alice") == 500 * E18
        assert plan.new_state.reserve_of("WETH") == 3 * E18 // 4

    def test_burn_beyond_reserve(self, ledger, minted) -> None:
        """Возврат больше резерва проверяется до списания баланса"""
        with pytest.raises(InsufficientCollateral):
            ledger.plan_burn(minted, "alice", 2_001 * E18, "WETH", reader({"WETH": ETH_PRICE}))

    def test_burn_limit(self, ledger, minted) -> None:
        limited = minted.model_copy(update={"params": ReserveCoinParams(burn_limit_per_user=100 * E18)})
        with pytest.raises(BurnLimitExceeded):
            ledger.plan_burn(limited, "alice", 101 * E18, "WETH", reader({"WETH": ETH_PRICE}))

    def test_burn_blacklisted_holder(self, ledger, minted) -> None:
        with pytest.raises(UserBlacklisted):
            ledger.plan_burn(minted, "eve", E18, "WETH", reader({"WETH": ETH_PRICE}))


# =============================================================================
# RATIO / USD
# =============================================================================


def test_ratio_undefined_without_supply(ledger, state) -> None:
    read = reader({"WETH": ETH_PRICE})
    assert ledger.collateral_ratio(state, "WETH", read).is_undefined
    assert read.reads == []


def test_ratio_after_mint(ledger, state) -> None:
    read = reader({"WETH": ETH_PRICE})
    minted = ledger.plan_mint(state, "alice", 1_000 * E18, "WETH", E18, read).new_state
    assert ledger.collateral_ratio(minted, "WETH", read).value_bps == 20_000


def test_ratio_reads_price_for_empty_reserve(ledger, state) -> None:
    """Пустой резерв не освобождает от чтения котировки"""
    minted = ledger.plan_mint(state, "alice", 1_000 * E18, "WETH", E18, reader({"WETH": ETH_PRICE})).new_state
    drained = minted.model_copy(update={"reserves": {}})

    def stale(asset: str) -> PriceQuote:
        raise StalePrice(f"{asset} round is stale")

    with pytest.raises(StalePrice):
        ledger.collateral_ratio(drained, "WETH", stale)


def test_total_reserves_usd_skips_unsupported(ledger, state) -> None:
    read = reader({"WETH": ETH_PRICE, "OLD": 10**8})
    with_old = state.model_copy(update={"reserves": {"WETH": E18, "OLD": 5 * E18}})
    assert ledger.total_reserves_usd(with_old, read) == 2_000 * E18
    assert "OLD" not in read.reads
