"""PositionAccountant — позиции и ликвидация algorithmic coin (vltUSDe).

Цена вида collateral:
- ETH: отдельный ETH/USD feed (state.eth_price_asset)
- LSD: собственный LSD/ETH feed, умноженный на ETH/USD

Ratio:
- calculate_collateral_ratio(collateral, debt) = value_usd * 10000 / debt
- UNDEFINED при debt == 0

Зоны:
- ratio >= min_collateral_ratio: можно выводить
- liquidation_threshold <= ratio < min_collateral_ratio: вывод запрещён, ликвидация запрещена
- ratio < liquidation_threshold: ликвидация разрешена

Ликвидация забирает всю sub-position (не частично). Ликвидатор гасит
долг позиции своими токенами и получает seized * penalty * cut / 10000^2,
остаток удерживает протокол.
"""

from dataclasses import dataclass

from src.core.domain.position import ETH, AlgorithmicCoinState
from src.core.domain.quote import PriceReader
from src.core.domain.ratio import Ratio
from src.core.domain.token_ledger import destroy, issue
from src.core.domain.units import BPS_SCALE, PRICE_SCALE, apply_bps, compose_prices, ratio_bps, value_in_usd
from src.core.errors import (
    CollateralNotSupported,
    InsufficientCollateral,
    InsufficientDebt,
    InvalidAmount,
    InvalidCollateralRatio,
    LSDNotSupported,
    PositionNotLiquidatable,
)
from src.core.math.fixed_point import checked_sub, mul_div


@dataclass(frozen=True)
class PositionMintPlan:
    """Результат планирования mint_with_collateral."""

    new_state: AlgorithmicCoinState
    price: int
    required_collateral: int
    staking_accrued: int
    resulting_ratio: Ratio


@dataclass(frozen=True)
class PositionBurnPlan:
    """Результат планирования burn_for_collateral."""

    new_state: AlgorithmicCoinState
    resulting_ratio: Ratio
    remaining_debt: int


@dataclass(frozen=True)
class LiquidationPlan:
    """Результат планирования ликвидации."""

    new_state: AlgorithmicCoinState
    ratio: Ratio
    seized_collateral: int
    destroyed_debt: int
    liquidator_reward: int
    protocol_retained: int


class PositionAccountant:
    """Расчёты и переходы позиций algorithmic coin."""

    # =========================================================================
    # ЦЕНЫ И RATIO
    # =========================================================================

    @staticmethod
    def require_mintable_kind(state: AlgorithmicCoinState, kind: str) -> None:
        """
        Raises:
            CollateralNotSupported: ETH выключен
            LSDNotSupported: LSD не зарегистрирован или выключен
        """
        if kind == ETH:
            if not state.eth_supported:
                raise CollateralNotSupported(kind)
            return
        lsd = state.lsds.get(kind)
        if lsd is None or not lsd.supported:
            raise LSDNotSupported(kind)

    @staticmethod
    def require_known_kind(state: AlgorithmicCoinState, kind: str) -> None:
        """Вид collateral известен (возможно, уже выключен — выход из позиции разрешён)."""
        if kind != ETH and kind not in state.lsds:
            raise LSDNotSupported(kind)

    @staticmethod
    def price_of_kind(state: AlgorithmicCoinState, kind: str, read_price: PriceReader) -> int:
        """USD цена вида collateral (1e8)."""
        eth_price = read_price(state.eth_price_asset).value
        if kind == ETH:
            return eth_price
        lsd = state.lsds.get(kind)
        if lsd is None:
            raise LSDNotSupported(kind)
        return compose_prices(read_price(lsd.rate_feed_asset).value, eth_price)

    @staticmethod
    def required_collateral(mint_amount: int, price: int, min_ratio_bps: int) -> int:
        return mul_div(mint_amount * min_ratio_bps, PRICE_SCALE, price * BPS_SCALE)

    @staticmethod
    def calculate_collateral_ratio(collateral: int, debt: int, price: int) -> Ratio:
        """Ratio sub-position; UNDEFINED при нулевом долге."""
        if debt == 0:
            return Ratio.undefined()
        return Ratio.of(ratio_bps(value_in_usd(collateral, price), debt))

    def position_ratio(
        self,
        state: AlgorithmicCoinState,
        account: str,
        kind: str,
        read_price: PriceReader,
    ) -> Ratio:
        """Текущий ratio sub-position. Цена читается только при ненулевом долге."""
        position = state.position_of(account)
        debt = position.debt(kind)
        if debt == 0:
            return Ratio.undefined()
        price = self.price_of_kind(state, kind, read_price)
        return self.calculate_collateral_ratio(position.collateral(kind), debt, price)

    def is_liquidatable(
        self,
        state: AlgorithmicCoinState,
        account: str,
        kind: str,
        read_price: PriceReader,
    ) -> bool:
        ratio = self.position_ratio(state, account, kind, read_price)
        return ratio.is_below(state.params.liquidation_threshold_bps)

    @staticmethod
    def total_value_locked(state: AlgorithmicCoinState) -> int:
        """Сумма custody балансов по поддерживаемым видам collateral."""
        return sum(state.custody_of(kind) for kind in state.supported_kinds())

    # =========================================================================
    # ПЕРЕХОДЫ
    # =========================================================================

    def plan_mint(
        self,
        state: AlgorithmicCoinState,
        account: str,
        amount: int,
        kind: str,
        collateral: int,
        read_price: PriceReader,
    ) -> PositionMintPlan:
        """
        Планирование mint_with_collateral.

        Raises:
            InvalidAmount, LSDNotSupported, CollateralNotSupported,
            InsufficientCollateral, OracleError
        """
        if amount == 0 or collateral == 0:
            raise InvalidAmount(f"Mint amount and collateral must be positive: amount={amount}, collateral={collateral}")
        self.require_mintable_kind(state, kind)

        price = self.price_of_kind(state, kind, read_price)
        min_ratio = state.params.min_collateral_ratio_bps
        required = self.required_collateral(amount, price, min_ratio)
        if collateral < required:
            raise InsufficientCollateral(required, collateral)

        position = state.position_of(account)
        new_collateral = position.collateral(kind) + collateral
        new_debt = position.debt(kind) + amount

        # Долив в существующую позицию: минимум проверяется на всей позиции
        required_total = self.required_collateral(new_debt, price, min_ratio)
        if new_collateral < required_total:
            raise InsufficientCollateral(required_total - position.collateral(kind), collateral)

        staking = state.staking
        accrued = apply_bps(collateral, staking.reward_rate_bps)
        new_staking = staking.model_copy(
            update={
                "total_staked": staking.total_staked + collateral,
                "pending_rewards": staking.pending_rewards + accrued,
            }
        )

        new_state = state.model_copy(
            update={
                "positions": {**state.positions, account: position.with_entry(kind, new_collateral, new_debt)},
                "custody": {**state.custody, kind: state.custody_of(kind) + collateral},
                "token": issue(state.token, account, amount),
                "staking": new_staking,
            }
        )
        return PositionMintPlan(
            new_state=new_state,
            price=price,
            required_collateral=required,
            staking_accrued=accrued,
            resulting_ratio=self.calculate_collateral_ratio(new_collateral, new_debt, price),
        )

    def plan_burn(
        self,
        state: AlgorithmicCoinState,
        account: str,
        burn_amount: int,
        withdraw_amount: int,
        kind: str,
        read_price: PriceReader,
    ) -> PositionBurnPlan:
        """
        Планирование burn_for_collateral.

        Ratio проверяется на позиции ПОСЛЕ burn и вывода, а не на текущей —
        вывести collateral в недообеспеченное состояние нельзя.

        Raises:
            InvalidAmount, LSDNotSupported, InsufficientDebt,
            InsufficientCollateral, InvalidCollateralRatio, InsufficientBalance
        """
        if burn_amount == 0:
            raise InvalidAmount("Burn amount must be positive")
        self.require_known_kind(state, kind)

        position = state.position_of(account)
        debt = position.debt(kind)
        collateral = position.collateral(kind)
        if debt < burn_amount:
            raise InsufficientDebt(f"Debt {debt} of {account!r} in {kind} is below burn amount {burn_amount}")
        if withdraw_amount > collateral:
            raise InsufficientCollateral(withdraw_amount, collateral)

        new_debt = debt - burn_amount
        new_collateral = collateral - withdraw_amount

        if new_debt == 0:
            ratio = Ratio.undefined()
        else:
            price = self.price_of_kind(state, kind, read_price)
            ratio = self.calculate_collateral_ratio(new_collateral, new_debt, price)
        if ratio.is_below(state.params.min_collateral_ratio_bps):
            raise InvalidCollateralRatio(
                f"Resulting ratio {ratio} below minimum {state.params.min_collateral_ratio_bps} bps"
            )

        staking = state.staking
        new_state = state.model_copy(
            update={
                "positions": {**state.positions, account: position.with_entry(kind, new_collateral, new_debt)},
                "custody": {**state.custody, kind: checked_sub(state.custody_of(kind), withdraw_amount, "custody")},
                "token": destroy(state.token, account, burn_amount),
                "staking": staking.model_copy(
                    update={"total_staked": max(0, staking.total_staked - withdraw_amount)}
                ),
            }
        )
        return PositionBurnPlan(new_state=new_state, resulting_ratio=ratio, remaining_debt=new_debt)

    def plan_liquidation(
        self,
        state: AlgorithmicCoinState,
        account: str,
        kind: str,
        read_price: PriceReader,
        liquidator: str,
    ) -> LiquidationPlan:
        """
        Планирование ликвидации sub-position account/kind.

        Долг позиции погашается токенами ликвидатора, поэтому ликвидация не
        зависит от того, где находятся токены, выпущенные заёмщику.

        Raises:
            LSDNotSupported, PositionNotLiquidatable, InsufficientBalance, OracleError
        """
        self.require_known_kind(state, kind)
        ratio = self.position_ratio(state, account, kind, read_price)
        if not ratio.is_below(state.params.liquidation_threshold_bps):
            raise PositionNotLiquidatable(
                f"Position {account!r}/{kind} ratio {ratio} is not below "
                f"threshold {state.params.liquidation_threshold_bps} bps"
            )

        position = state.position_of(account)
        seized = position.collateral(kind)
        debt = position.debt(kind)
        reward = apply_bps(apply_bps(seized, state.params.liquidation_penalty_bps), state.params.liquidator_cut_bps)
        retained = seized - reward

        staking = state.staking
        new_state = state.model_copy(
            update={
                "positions": {**state.positions, account: position.with_entry(kind, 0, 0)},
                "custody": {**state.custody, kind: checked_sub(state.custody_of(kind), reward, "custody")},
                "protocol_retained": {
                    **state.protocol_retained,
                    kind: state.protocol_retained.get(kind, 0) + retained,
                },
                "token": destroy(state.token, liquidator, debt),
                "staking": staking.model_copy(
                    update={"total_staked": max(0, staking.total_staked - reward)}
                ),
            }
        )
        return LiquidationPlan(
            new_state=new_state,
            ratio=ratio,
            seized_collateral=seized,
            destroyed_debt=debt,
            liquidator_reward=reward,
            protocol_retained=retained,
        )


