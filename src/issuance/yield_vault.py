"""YieldVaultController — ERC-4626-style yield-bearing vault (vltUSDY).

Каждая state-changing операция сначала начисляет yield за период
(VaultAccountant.accrue), затем атрибутирует buffer затронутому
пользователю. Pause управляется ролью ADMIN.
"""

import logging
from typing import List, Optional

from src.access.policy import AccessPolicy, Role
from src.accounting.vault_accountant import VaultAccountant, VaultPlan
from src.core.domain.events import EventType, IssuanceEvent
from src.core.domain.token_ledger import TokenLedgerState, TokenMetadata, move, set_allowance, spend_allowance
from src.core.domain.tx import TxContext
from src.core.domain.vault_state import UserYieldRecord, VaultState, YieldVaultLedgerState, YieldVaultParams
from src.core.errors import InvalidConfiguration, YieldUpdateTooFrequent
from src.core.event_log import EventLog
from src.issuance.controller import ControllerConfig, IssuanceController
from src.issuance.custody import CustodyGateway
from src.oracle.price_oracle import PriceOracle

logger = logging.getLogger(__name__)


class YieldVaultController(IssuanceController[YieldVaultLedgerState]):
    """Контроллер yield vault."""

    PAUSER_ROLE = Role.ADMIN

    def __init__(
        self,
        name: str,
        symbol: str,
        admin: str,
        oracle: PriceOracle,
        custody: CustodyGateway,
        underlying_asset: str,
        rate_feed_asset: str,
        initial_yield_rate_bps: int = 0,
        deployed_at: int = 0,
        params: Optional[YieldVaultParams] = None,
        event_log: Optional[EventLog] = None,
        config: Optional[ControllerConfig] = None,
    ):
        """
        Args:
            underlying_asset: актив, который принимает vault
            rate_feed_asset: ключ оракула reference rate (1e8 = 100% годовых)
            initial_yield_rate_bps: стартовая ставка (зажимается в границы params)
            deployed_at: точка отсчёта первого периода начисления
        """
        event_log = event_log or EventLog()
        params = params or YieldVaultParams()
        state = YieldVaultLedgerState(
            params=params,
            token=TokenLedgerState(metadata=TokenMetadata(name=name, symbol=symbol)),
            underlying_asset=underlying_asset,
            rate_feed_asset=rate_feed_asset,
            vault=VaultState(
                yield_rate_bps=VaultAccountant.clamp_rate(initial_yield_rate_bps, params),
                last_accrual=deployed_at,
            ),
        )
        access = AccessPolicy(admin, initial_roles=[Role.ADMIN, Role.YIELD_MANAGER], event_log=event_log)
        super().__init__(state, access, oracle, custody, event_log=event_log, config=config)
        self.accountant = VaultAccountant()

    # =========================================================================
    # VIEWS
    # =========================================================================

    @property
    def metadata(self) -> TokenMetadata:
        return self._state.token.metadata

    @property
    def asset(self) -> str:
        return self._state.underlying_asset

    @property
    def total_supply(self) -> int:
        return self._state.total_shares

    def total_assets(self) -> int:
        return self._state.total_assets()

    @property
    def yield_rate(self) -> int:
        return self._state.vault.yield_rate_bps

    @property
    def vault(self) -> VaultState:
        return self._state.vault

    def balance_of(self, account: str) -> int:
        return self._state.token.balance_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return self._state.token.allowance(owner, spender)

    def yield_of(self, account: str) -> UserYieldRecord:
        return self._state.yield_of(account)

    def preview_deposit(self, assets: int) -> int:
        return self.accountant.preview_deposit(self._state, assets)

    def preview_mint(self, shares: int) -> int:
        return self.accountant.preview_mint(self._state, shares)

    def preview_withdraw(self, assets: int) -> int:
        return self.accountant.preview_withdraw(self._state, assets)

    def preview_redeem(self, shares: int) -> int:
        return self.accountant.preview_redeem(self._state, shares)

    def convert_to_shares(self, assets: int) -> int:
        return self.accountant.convert_to_shares(self._state, assets)

    def convert_to_assets(self, shares: int) -> int:
        return self.accountant.convert_to_assets(self._state, shares)

    def max_withdraw(self, owner: str) -> int:
        return self.accountant.max_withdraw(self._state, owner)

    def max_redeem(self, owner: str) -> int:
        return self.accountant.max_redeem(self._state, owner)

    # =========================================================================
    # ENTRY / EXIT
    # =========================================================================

    def deposit(self, tx: TxContext, assets: int, receiver: str) -> int:
        """
        Депозит assets от вызывающего, shares выпускаются receiver.

        Returns:
            Выпущенные shares
        """
        with self._operation("deposit", tx), self._non_reentrant():
            self._require_not_paused()
            self._require_amounts(assets=assets)
            plan = self.accountant.plan_deposit(self._state, receiver, assets, tx.timestamp)
            self._pull(self._state.underlying_asset, tx.caller, plan.assets)
            self._commit_flow(EventType.DEPOSIT, tx, receiver, plan)
            return plan.shares

    def mint(self, tx: TxContext, shares: int, receiver: str) -> int:
        """
        Выпуск ровно shares для receiver.

        Returns:
            Списанные с вызывающего assets
        """
        with self._operation("mint", tx), self._non_reentrant():
            self._require_not_paused()
            self._require_amounts(shares=shares)
            plan = self.accountant.plan_mint(self._state, receiver, shares, tx.timestamp)
            self._pull(self._state.underlying_asset, tx.caller, plan.assets)
            self._commit_flow(EventType.DEPOSIT, tx, receiver, plan)
            return plan.assets

    def withdraw(self, tx: TxContext, assets: int, receiver: str, owner: str) -> int:
        """
        Вывод ровно assets из позиции owner.

        Вызывающий, отличный от owner, тратит allowance на сожжённые shares.

        Returns:
            Сожжённые shares

        Raises:
            InvalidAmount, InsufficientAllowance, InsufficientBalance,
            InsufficientLiquidity, OperationPaused, CustodyTransferFailed
        """
        with self._operation("withdraw", tx), self._non_reentrant():
            self._require_not_paused()
            self._require_amounts(assets=assets)
            plan = self.accountant.plan_withdraw(self._state, tx.caller, owner, assets, tx.timestamp)
            self._push(self._state.underlying_asset, receiver, plan.assets)
            self._commit_flow(EventType.WITHDRAW, tx, owner, plan, receiver=receiver)
            return plan.shares

    def redeem(self, tx: TxContext, shares: int, receiver: str, owner: str) -> int:
        """
        Сжигание shares owner с выплатой assets receiver.

        Returns:
            Выплаченные assets
        """
        with self._operation("redeem", tx), self._non_reentrant():
            self._require_not_paused()
            self._require_amounts(shares=shares)
            plan = self.accountant.plan_redeem(self._state, tx.caller, owner, shares, tx.timestamp)
            self._push(self._state.underlying_asset, receiver, plan.assets)
            self._commit_flow(EventType.WITHDRAW, tx, owner, plan, receiver=receiver)
            return plan.assets

    def _commit_flow(
        self,
        event_type: EventType,
        tx: TxContext,
        account: str,
        plan: VaultPlan,
        receiver: Optional[str] = None,
    ) -> None:
        events = self._accrual_events(tx, plan.accrued, plan.new_state)
        events.append(
            self._event(
                event_type,
                tx,
                amount=plan.assets,
                primary_actor=account,
                secondary_asset=receiver or self._state.underlying_asset,
                secondary_amount=plan.shares,
                resulting_total=plan.new_state.total_shares,
            )
        )
        self._commit(plan.new_state, events)
        logger.info(
            "%s %s: assets=%d shares=%d (accrued %d, attributed %d)",
            event_type.value.lower(), account, plan.assets, plan.shares, plan.accrued, plan.attributed,
        )

    def _accrual_events(self, tx: TxContext, accrued: int, new_state: YieldVaultLedgerState) -> List[IssuanceEvent]:
        if accrued == 0:
            return []
        return [
            self._event(
                EventType.YIELD_ACCRUED,
                tx,
                amount=accrued,
                secondary_amount=new_state.vault.yield_rate_bps,
                resulting_total=new_state.vault.total_yield_accrued,
            )
        ]

    # =========================================================================
    # YIELD
    # =========================================================================

    def claim_yield(self, tx: TxContext, receiver: str) -> int:
        """
        Выплата накопленного yield вызывающего на receiver.

        Returns:
            Выплаченная сумма; 0 без изменения состояния, если нечего выплачивать

        Raises:
            OperationPaused, InsufficientLiquidity, CustodyTransferFailed
        """
        with self._operation("claim_yield", tx), self._non_reentrant():
            self._require_not_paused()
            plan = self.accountant.plan_claim(self._state, tx.caller, tx.timestamp)
            if plan is None:
                return 0

            self._push(self._state.underlying_asset, receiver, plan.amount)
            events = self._accrual_events(tx, plan.accrued, plan.new_state)
            events.append(
                self._event(
                    EventType.YIELD_CLAIMED,
                    tx,
                    amount=plan.amount,
                    secondary_asset=receiver,
                    resulting_total=plan.new_state.vault.total_yield_claimed,
                )
            )
            self._commit(plan.new_state, events)
            logger.info("%s claimed %d yield to %s", tx.caller, plan.amount, receiver)
            return plan.amount

    def accrue_yield(self, tx: TxContext) -> int:
        """Принудительное начисление за период (OPERATOR)."""
        with self._operation("accrue_yield", tx):
            self._require_role(Role.OPERATOR, tx)
            self._require_not_paused()
            staged, accrued = self.accountant.accrue(self._state, tx.timestamp)
            if staged is not self._state:
                self._commit(staged, self._accrual_events(tx, accrued, staged))
            return accrued

    def update_yield_rate(self, tx: TxContext) -> int:
        """
        Ставка из reference rate оракула, зажатая в [min, max].

        Перед сменой ставки начисляется период по старой ставке.

        Returns:
            Новая ставка (bps)

        Raises:
            Unauthorized, OperationPaused, YieldUpdateTooFrequent, OracleError
        """
        with self._operation("update_yield_rate", tx):
            self._require_role(Role.YIELD_MANAGER, tx)
            self._require_not_paused()

            last_update = self._state.vault.last_rate_update
            threshold = self._state.params.yield_update_threshold
            if last_update is not None and tx.timestamp - last_update < threshold:
                raise YieldUpdateTooFrequent(
                    f"Last rate update at {last_update}, next allowed at {last_update + threshold}"
                )

            quote = self._price_reader(tx.timestamp)(self._state.rate_feed_asset)
            rate = self.accountant.clamp_rate(self.accountant.rate_from_quote(quote.value), self._state.params)
            self._set_rate(tx, rate, last_rate_update=tx.timestamp)
            return rate

    def set_yield_rate(self, tx: TxContext, rate_bps: int) -> int:
        """Ручная установка ставки (ADMIN), зажимается в границы."""
        with self._operation("set_yield_rate", tx):
            self._require_role(Role.ADMIN, tx)
            if rate_bps < 0:
                raise InvalidConfiguration(f"Yield rate cannot be negative: {rate_bps}")
            rate = self.accountant.clamp_rate(rate_bps, self._state.params)
            self._set_rate(tx, rate)
            return rate

    def set_yield_bounds(self, tx: TxContext, min_rate_bps: int, max_rate_bps: int) -> YieldVaultParams:
        """
        Новые границы ставки; текущая ставка зажимается в них.

        Границы и зажатая ставка фиксируются одним commit; если ставка
        меняется, период сначала начисляется по старой ставке.

        Raises:
            InvalidConfiguration: min > max или значения вне [0, 10000]
        """
        with self._operation("set_yield_bounds", tx):
            self._require_role(Role.ADMIN, tx)
            params = self._validated_params(
                self._state.params,
                {"min_yield_rate_bps": min_rate_bps, "max_yield_rate_bps": max_rate_bps},
            )
            previous = self._state.vault.yield_rate_bps
            rate = self.accountant.clamp_rate(previous, params)

            staged, accrued = self._state, 0
            if rate != previous:
                staged, accrued = self.accountant.accrue(self._state, tx.timestamp)
            new_state = staged.model_copy(
                update={"params": params, "vault": staged.vault.model_copy(update={"yield_rate_bps": rate})}
            )

            events = self._accrual_events(tx, accrued, staged)
            events.append(
                self._event(EventType.PARAMS_UPDATED, tx, amount=max_rate_bps, secondary_asset="yield_bounds",
                            secondary_amount=min_rate_bps, resulting_total=new_state.total_shares)
            )
            if rate != previous:
                events.append(self._rate_event(tx, rate, previous, new_state))
            self._commit(new_state, events)
            logger.info("yield bounds set to [%d, %d] bps by %s (rate %d -> %d)",
                        min_rate_bps, max_rate_bps, tx.caller, previous, rate)
            return params

    def update_params(self, tx: TxContext, **changes) -> YieldVaultParams:
        """Обновление accrual_period / yield_update_threshold / границ (ADMIN)."""
        with self._operation("update_params", tx):
            self._require_role(Role.ADMIN, tx)
            params = self._validated_params(self._state.params, changes)
            rate = self.accountant.clamp_rate(self._state.vault.yield_rate_bps, params)
            staged, accrued = self.accountant.accrue(self._state, tx.timestamp)
            new_state = staged.model_copy(
                update={"params": params, "vault": staged.vault.model_copy(update={"yield_rate_bps": rate})}
            )
            events = self._accrual_events(tx, accrued, staged)
            events.append(
                self._event(EventType.PARAMS_UPDATED, tx, amount=params.accrual_period,
                            secondary_amount=rate, resulting_total=new_state.total_shares)
            )
            self._commit(new_state, events)
            logger.info("vault params updated by %s: %s", tx.caller, params)
            return params

    def _set_rate(self, tx: TxContext, rate: int, last_rate_update: Optional[int] = None) -> None:
        staged, accrued = self.accountant.accrue(self._state, tx.timestamp)
        previous = staged.vault.yield_rate_bps
        vault_update = {"yield_rate_bps": rate}
        if last_rate_update is not None:
            vault_update["last_rate_update"] = last_rate_update
        new_state = staged.model_copy(update={"vault": staged.vault.model_copy(update=vault_update)})

        events = self._accrual_events(tx, accrued, staged)
        events.append(self._rate_event(tx, rate, previous, new_state))
        self._commit(new_state, events)
        logger.info("yield rate %d -> %d bps by %s", previous, rate, tx.caller)

    def _rate_event(
        self, tx: TxContext, rate: int, previous: int, new_state: YieldVaultLedgerState
    ) -> IssuanceEvent:
        return self._event(
            EventType.YIELD_RATE_UPDATED,
            tx,
            amount=rate,
            secondary_asset=self._state.rate_feed_asset,
            secondary_amount=previous,
            resulting_total=new_state.total_assets(),
        )

    # =========================================================================
    # TOKEN
    # =========================================================================

    def transfer(self, tx: TxContext, to: str, shares: int) -> None:
        """
        Перевод shares.

        Перед переводом обе стороны получают атрибуцию текущего buffer по
        старым балансам.
        """
        with self._operation("transfer", tx):
            self._require_not_paused()
            self._transfer(tx, tx.caller, to, shares, self._state.token)

    def transfer_from(self, tx: TxContext, owner: str, to: str, shares: int) -> None:
        with self._operation("transfer_from", tx):
            self._require_not_paused()
            token = spend_allowance(self._state.token, owner, tx.caller, shares)
            self._transfer(tx, owner, to, shares, token)

    def approve(self, tx: TxContext, spender: str, shares: int) -> None:
        token = set_allowance(self._state.token, tx.caller, spender, shares)
        self._commit(self._state.model_copy(update={"token": token}), [
            self._event(EventType.APPROVAL, tx, amount=shares, secondary_asset=spender,
                        resulting_total=token.total_supply)
        ])

    def _transfer(self, tx: TxContext, sender: str, to: str, shares: int, token: TokenLedgerState) -> None:
        staged, accrued = self.accountant.accrue(self._state, tx.timestamp)
        staged, _ = self.accountant.attribute(staged, sender, tx.timestamp)
        staged, _ = self.accountant.attribute(staged, to, tx.timestamp)
        new_state = staged.model_copy(update={"token": move(token, sender, to, shares)})

        events = self._accrual_events(tx, accrued, staged)
        events.append(
            self._event(EventType.TRANSFER, tx, amount=shares, primary_actor=sender, secondary_asset=to,
                        resulting_total=new_state.total_shares)
        )
        self._commit(new_state, events)
