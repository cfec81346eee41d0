"""AlgorithmicCoinController — over-collateralized stablecoin на ETH/LSD (vltUSDe).

mint_with_collateral / burn_for_collateral вызываются самим владельцем
позиции; liquidate требует роли LIQUIDATOR. Реестр LSD и staking
управляются STAKING_MANAGER, параметры и pause — DEFAULT_ADMIN.
"""

import logging
from typing import Optional

from src.access.policy import AccessPolicy, Role
from src.accounting.position_accountant import PositionAccountant
from src.core.domain.events import EventType
from src.core.domain.position import ETH, AlgorithmicCoinParams, AlgorithmicCoinState, LSDConfig, UserPosition
from src.core.domain.ratio import Ratio
from src.core.domain.token_ledger import TokenLedgerState, TokenMetadata, move, set_allowance, spend_allowance
from src.core.domain.tx import TxContext
from src.core.domain.units import BPS_SCALE
from src.core.errors import InvalidConfiguration, LSDNotSupported
from src.core.event_log import EventLog
from src.issuance.controller import ControllerConfig, IssuanceController
from src.issuance.custody import CustodyGateway
from src.oracle.price_oracle import PriceOracle

logger = logging.getLogger(__name__)


class AlgorithmicCoinController(IssuanceController[AlgorithmicCoinState]):
    """Контроллер algorithmic coin."""

    def __init__(
        self,
        name: str,
        symbol: str,
        admin: str,
        oracle: PriceOracle,
        custody: CustodyGateway,
        eth_price_asset: str = ETH,
        params: Optional[AlgorithmicCoinParams] = None,
        event_log: Optional[EventLog] = None,
        config: Optional[ControllerConfig] = None,
    ):
        event_log = event_log or EventLog()
        state = AlgorithmicCoinState(
            params=params or AlgorithmicCoinParams(),
            token=TokenLedgerState(metadata=TokenMetadata(name=name, symbol=symbol)),
            eth_price_asset=eth_price_asset,
        )
        access = AccessPolicy(admin, initial_roles=[Role.LIQUIDATOR, Role.STAKING_MANAGER], event_log=event_log)
        super().__init__(state, access, oracle, custody, event_log=event_log, config=config)
        self.accountant = PositionAccountant()

    # =========================================================================
    # VIEWS
    # =========================================================================

    @property
    def metadata(self) -> TokenMetadata:
        return self._state.token.metadata

    @property
    def total_supply(self) -> int:
        return self._state.token.total_supply

    @property
    def params(self) -> AlgorithmicCoinParams:
        return self._state.params

    def balance_of(self, account: str) -> int:
        return self._state.token.balance_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return self._state.token.allowance(owner, spender)

    def position_of(self, account: str) -> UserPosition:
        return self._state.position_of(account)

    def custody_of(self, kind: str) -> int:
        return self._state.custody_of(kind)

    def protocol_retained(self, kind: str) -> int:
        return self._state.protocol_retained.get(kind, 0)

    def required_collateral(self, mint_amount: int, kind: str, now: int) -> int:
        price = self.accountant.price_of_kind(self._state, kind, self._price_reader(now))
        return self.accountant.required_collateral(mint_amount, price, self._state.params.min_collateral_ratio_bps)

    def calculate_collateral_ratio(self, collateral: int, debt: int, kind: str, now: int) -> Ratio:
        if debt == 0:
            return Ratio.undefined()
        price = self.accountant.price_of_kind(self._state, kind, self._price_reader(now))
        return self.accountant.calculate_collateral_ratio(collateral, debt, price)

    def position_ratio(self, account: str, kind: str, now: int) -> Ratio:
        return self.accountant.position_ratio(self._state, account, kind, self._price_reader(now))

    def is_liquidatable(self, account: str, kind: str, now: int) -> bool:
        return self.accountant.is_liquidatable(self._state, account, kind, self._price_reader(now))

    def total_value_locked(self) -> int:
        return self.accountant.total_value_locked(self._state)

    # =========================================================================
    # ПОЗИЦИИ
    # =========================================================================

    def mint_with_collateral(self, tx: TxContext, amount: int, kind: str, collateral: int) -> None:
        """
        Депозит collateral вида kind и выпуск amount токенов вызывающему.

        Raises:
            OperationPaused, ReentrantCall, InvalidAmount, LSDNotSupported,
            CollateralNotSupported, InsufficientCollateral, OracleError,
            CustodyTransferFailed
        """
        with self._operation("mint_with_collateral", tx), self._non_reentrant():
            self._require_not_paused()
            self._require_amounts(amount=amount, collateral=collateral)

            plan = self.accountant.plan_mint(
                self._state, tx.caller, amount, kind, collateral, self._price_reader(tx.timestamp)
            )
            self._pull(kind, tx.caller, collateral)

            events = [
                self._event(
                    EventType.MINT_WITH_COLLATERAL,
                    tx,
                    amount=amount,
                    secondary_asset=kind,
                    secondary_amount=collateral,
                    resulting_total=plan.new_state.token.total_supply,
                )
            ]
            if plan.staking_accrued:
                events.append(
                    self._event(
                        EventType.STAKING_REWARDS_ACCRUED,
                        tx,
                        amount=plan.staking_accrued,
                        secondary_asset=kind,
                        resulting_total=plan.new_state.staking.pending_rewards,
                    )
                )
            self._commit(plan.new_state, events)
            logger.info(
                "%s minted %d against %d %s (ratio %s)",
                tx.caller, amount, collateral, kind, plan.resulting_ratio,
            )

    def burn_for_collateral(self, tx: TxContext, burn_amount: int, withdraw_amount: int, kind: str) -> None:
        """
        Погашение долга и вывод collateral.

        Ratio позиции после операции должен оставаться >= min_collateral_ratio.

        Raises:
            OperationPaused, ReentrantCall, InvalidAmount, LSDNotSupported,
            InsufficientDebt, InsufficientCollateral, InvalidCollateralRatio,
            InsufficientBalance, OracleError, CustodyTransferFailed
        """
        with self._operation("burn_for_collateral", tx), self._non_reentrant():
            self._require_not_paused()
            self._require_amounts(burn_amount=burn_amount, withdraw_amount=withdraw_amount)

            plan = self.accountant.plan_burn(
                self._state, tx.caller, burn_amount, withdraw_amount, kind, self._price_reader(tx.timestamp)
            )
            self._push(kind, tx.caller, withdraw_amount)

            self._commit(plan.new_state, [
                self._event(
                    EventType.BURN_FOR_COLLATERAL,
                    tx,
                    amount=burn_amount,
                    secondary_asset=kind,
                    secondary_amount=withdraw_amount,
                    resulting_total=plan.new_state.token.total_supply,
                )
            ])
            logger.info(
                "%s burned %d and withdrew %d %s (remaining debt %d, ratio %s)",
                tx.caller, burn_amount, withdraw_amount, kind, plan.remaining_debt, plan.resulting_ratio,
            )

    def liquidate(self, tx: TxContext, user: str, kind: str) -> int:
        """
        Ликвидация sub-position user/kind целиком.

        Returns:
            Вознаграждение ликвидатора в единицах collateral

        Raises:
            Unauthorized, OperationPaused, ReentrantCall, LSDNotSupported,
            PositionNotLiquidatable, InsufficientBalance, OracleError,
            CustodyTransferFailed
        """
        with self._operation("liquidate", tx), self._non_reentrant():
            self._require_role(Role.LIQUIDATOR, tx)
            self._require_not_paused()

            plan = self.accountant.plan_liquidation(
                self._state, user, kind, self._price_reader(tx.timestamp), liquidator=tx.caller
            )
            self._push(kind, tx.caller, plan.liquidator_reward)

            self._commit(plan.new_state, [
                self._event(
                    EventType.LIQUIDATION,
                    tx,
                    amount=plan.destroyed_debt,
                    primary_actor=user,
                    secondary_asset=kind,
                    secondary_amount=plan.seized_collateral,
                    resulting_total=plan.new_state.token.total_supply,
                )
            ])
            logger.warning(
                "liquidated %s/%s at ratio %s: seized %d, debt %d, liquidator %s reward %d, retained %d",
                user, kind, plan.ratio, plan.seized_collateral, plan.destroyed_debt,
                tx.caller, plan.liquidator_reward, plan.protocol_retained,
            )
            return plan.liquidator_reward

    # =========================================================================
    # TOKEN
    # =========================================================================

    def transfer(self, tx: TxContext, to: str, amount: int) -> None:
        with self._operation("transfer", tx):
            self._require_not_paused()
            self._commit_transfer(tx, tx.caller, to, amount, move(self._state.token, tx.caller, to, amount))

    def transfer_from(self, tx: TxContext, owner: str, to: str, amount: int) -> None:
        with self._operation("transfer_from", tx):
            self._require_not_paused()
            token = spend_allowance(self._state.token, owner, tx.caller, amount)
            self._commit_transfer(tx, owner, to, amount, move(token, owner, to, amount))

    def approve(self, tx: TxContext, spender: str, amount: int) -> None:
        token = set_allowance(self._state.token, tx.caller, spender, amount)
        self._commit(self._state.model_copy(update={"token": token}), [
            self._event(EventType.APPROVAL, tx, amount=amount, secondary_asset=spender,
                        resulting_total=token.total_supply)
        ])

    def _commit_transfer(self, tx: TxContext, sender: str, to: str, amount: int, token: TokenLedgerState) -> None:
        self._commit(self._state.model_copy(update={"token": token}), [
            self._event(EventType.TRANSFER, tx, amount=amount, primary_actor=sender, secondary_asset=to,
                        resulting_total=token.total_supply)
        ])

    # =========================================================================
    # LSD / STAKING
    # =========================================================================

    def add_lsd(self, tx: TxContext, asset: str, rate_feed_asset: str) -> None:
        """Регистрация (или повторное включение) LSD."""
        self._require_role(Role.STAKING_MANAGER, tx)
        if not asset or not rate_feed_asset or asset == ETH:
            raise InvalidConfiguration(f"Invalid LSD registration: asset={asset!r}, rate feed={rate_feed_asset!r}")
        self._set_lsd(tx, LSDConfig(asset_id=asset, rate_feed_asset=rate_feed_asset, supported=True))

    def remove_lsd(self, tx: TxContext, asset: str) -> None:
        """
        Выключение LSD для новых mint.

        Запись остаётся: существующие позиции можно погасить и ликвидировать.
        """
        self._require_role(Role.STAKING_MANAGER, tx)
        current = self._state.lsds.get(asset)
        if current is None:
            raise LSDNotSupported(asset)
        self._set_lsd(tx, current.model_copy(update={"supported": False}))

    def _set_lsd(self, tx: TxContext, lsd: LSDConfig) -> None:
        if self._state.lsds.get(lsd.asset_id) == lsd:
            return
        lsds = {**self._state.lsds, lsd.asset_id: lsd}
        self._commit(self._state.model_copy(update={"lsds": lsds}), [
            self._event(
                EventType.LSD_SUPPORT_UPDATED,
                tx,
                amount=int(lsd.supported),
                secondary_asset=lsd.asset_id,
                secondary_amount=self._state.custody_of(lsd.asset_id),
                resulting_total=sum(1 for entry in lsds.values() if entry.supported),
            )
        ])
        logger.info("LSD %s (rate feed %s) supported=%s by %s",
                    lsd.asset_id, lsd.rate_feed_asset, lsd.supported, tx.caller)

    def set_staking_reward_rate(self, tx: TxContext, rate_bps: int) -> None:
        self._require_role(Role.STAKING_MANAGER, tx)
        if not 0 <= rate_bps <= BPS_SCALE:
            raise InvalidConfiguration(f"Staking reward rate must be in [0, {BPS_SCALE}] bps, got {rate_bps}")
        staking = self._state.staking
        if staking.reward_rate_bps == rate_bps:
            return
        self._commit(
            self._state.model_copy(update={"staking": staking.model_copy(update={"reward_rate_bps": rate_bps})}),
            [self._event(EventType.PARAMS_UPDATED, tx, amount=rate_bps, secondary_asset="staking_reward_rate",
                         resulting_total=staking.total_staked)],
        )
        logger.info("staking reward rate set to %d bps by %s", rate_bps, tx.caller)

    def harvest_staking_rewards(self, tx: TxContext) -> int:
        """
        Перенос накопленных staking rewards в harvested.

        Returns:
            Собранная сумма (0 если собирать нечего)
        """
        with self._operation("harvest_staking_rewards", tx):
            self._require_role(Role.STAKING_MANAGER, tx)
            self._require_not_paused()
            staking = self._state.staking
            amount = staking.pending_rewards
            if amount == 0:
                return 0

            new_staking = staking.model_copy(
                update={"pending_rewards": 0, "total_harvested": staking.total_harvested + amount}
            )
            self._commit(self._state.model_copy(update={"staking": new_staking}), [
                self._event(EventType.STAKING_REWARDS_HARVESTED, tx, amount=amount,
                            resulting_total=new_staking.total_harvested)
            ])
            logger.info("harvested %d staking rewards by %s", amount, tx.caller)
            return amount

    # =========================================================================
    # ADMIN
    # =========================================================================

    def set_eth_support(self, tx: TxContext, supported: bool) -> None:
        self._require_role(Role.DEFAULT_ADMIN, tx)
        if self._state.eth_supported == supported:
            return
        self._commit(self._state.model_copy(update={"eth_supported": supported}), [
            self._event(
                EventType.COLLATERAL_SUPPORT_UPDATED,
                tx,
                amount=int(supported),
                secondary_asset=ETH,
                secondary_amount=self._state.custody_of(ETH),
                resulting_total=len(self._state.supported_kinds()) + (1 if supported else -1),
            )
        ])
        logger.info("ETH collateral supported=%s by %s", supported, tx.caller)

    def update_params(self, tx: TxContext, **changes) -> AlgorithmicCoinParams:
        """
        Обновление ratio / threshold / penalty / cut.

        Raises:
            InvalidConfiguration: threshold >= min ratio или значения вне диапазонов
        """
        self._require_role(Role.DEFAULT_ADMIN, tx)
        params = self._validated_params(self._state.params, changes)
        self._commit(self._state.model_copy(update={"params": params}), [
            self._event(EventType.PARAMS_UPDATED, tx, amount=params.min_collateral_ratio_bps,
                        resulting_total=self._state.token.total_supply)
        ])
        logger.info("algorithmic coin params updated by %s: %s", tx.caller, params)
        return params
