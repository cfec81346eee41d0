"""ReserveCoinController — fully-collateralized stablecoin с KYC/compliance (vltUSD).

Роли:
- MINTER: mint
- BURNER: burn
- KYC_OPERATOR: set_kyc_status
- COMPLIANCE: set_blacklist_status
- DEFAULT_ADMIN: поддержка collateral, параметры, pause

Collateral для mint забирается у получателя, при burn возвращается
держателю. Transfer hook: blacklisted отправитель или получатель блокирует
перевод; на pause переводы тоже блокируются.
"""

import logging
from typing import Optional, Sequence

from src.access.policy import AccessPolicy, Role
from src.accounting.collateral_ledger import CollateralLedger
from src.core.domain.events import EventType
from src.core.domain.ratio import Ratio
from src.core.domain.reserve_state import Asset, ReserveCoinParams, ReserveCoinState, UserComplianceRecord
from src.core.domain.token_ledger import TokenLedgerState, TokenMetadata, move, set_allowance, spend_allowance
from src.core.domain.tx import TxContext
from src.core.errors import BatchLengthMismatch, InvalidConfiguration, UserBlacklisted
from src.core.event_log import EventLog
from src.issuance.controller import ControllerConfig, IssuanceController
from src.issuance.custody import CustodyGateway
from src.oracle.price_oracle import PriceOracle

logger = logging.getLogger(__name__)


class ReserveCoinController(IssuanceController[ReserveCoinState]):
    """Контроллер reserve coin."""

    def __init__(
        self,
        name: str,
        symbol: str,
        admin: str,
        oracle: PriceOracle,
        custody: CustodyGateway,
        min_collateral_ratio_bps: int = 14_000,
        event_log: Optional[EventLog] = None,
        config: Optional[ControllerConfig] = None,
    ):
        """
        Args:
            name: имя токена
            symbol: тикер токена
            admin: получает DEFAULT_ADMIN, MINTER и BURNER
            oracle: оракул цен collateral
            custody: коллаборатор переводов collateral
            min_collateral_ratio_bps: минимальный ratio для mint
        """
        event_log = event_log or EventLog()
        state = ReserveCoinState(
            params=ReserveCoinParams(min_collateral_ratio_bps=min_collateral_ratio_bps),
            token=TokenLedgerState(metadata=TokenMetadata(name=name, symbol=symbol)),
        )
        access = AccessPolicy(admin, initial_roles=[Role.MINTER, Role.BURNER], event_log=event_log)
        super().__init__(state, access, oracle, custody, event_log=event_log, config=config)
        self.ledger = CollateralLedger()

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
    def min_collateral_ratio(self) -> int:
        return self._state.params.min_collateral_ratio_bps

    def balance_of(self, account: str) -> int:
        return self._state.token.balance_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return self._state.token.allowance(owner, spender)

    def reserves(self, asset: str) -> int:
        return self._state.reserve_of(asset)

    @property
    def total_reserves(self) -> int:
        return self._state.total_reserves

    def kyc_verified(self, account: str) -> bool:
        return self._state.compliance_of(account).kyc_verified

    def blacklisted(self, account: str) -> bool:
        return self._state.compliance_of(account).blacklisted

    def compliance_of(self, account: str) -> UserComplianceRecord:
        return self._state.compliance_of(account)

    def required_collateral(self, amount: int, asset: str, now: int) -> int:
        price = self._price_reader(now)(asset).value
        return self.ledger.required_collateral(amount, price, self.min_collateral_ratio)

    def collateral_return(self, amount: int, asset: str, now: int) -> int:
        price = self._price_reader(now)(asset).value
        return self.ledger.collateral_return(amount, price)

    def get_collateral_ratio(self, asset: str, now: int) -> Ratio:
        return self.ledger.collateral_ratio(self._state, asset, self._price_reader(now))

    def get_total_reserves_usd(self, now: int) -> int:
        return self.ledger.total_reserves_usd(self._state, self._price_reader(now))

    # =========================================================================
    # MINT / BURN
    # =========================================================================

    def mint(self, tx: TxContext, to: str, amount: int, asset: str, collateral_in: int) -> None:
        """
        Выпуск amount токенов получателю to под collateral_in актива asset.

        Raises:
            Unauthorized, OperationPaused, ReentrantCall, KYCNotVerified,
            UserBlacklisted, CollateralNotSupported, InvalidAmount,
            MintLimitExceeded, InsufficientCollateral, OracleError,
            CustodyTransferFailed
        """
        with self._operation("mint", tx), self._non_reentrant():
            self._require_role(Role.MINTER, tx)
            self._require_not_paused()
            self._require_amounts(amount=amount, collateral_in=collateral_in)

            plan = self.ledger.plan_mint(
                self._state, to, amount, asset, collateral_in, self._price_reader(tx.timestamp)
            )
            self._pull(asset, to, collateral_in)

            self._commit(plan.new_state, [
                self._event(
                    EventType.MINT,
                    tx,
                    amount=amount,
                    primary_actor=to,
                    secondary_asset=asset,
                    secondary_amount=collateral_in,
                    resulting_total=plan.new_state.token.total_supply,
                )
            ])
            logger.info(
                "mint %d to %s against %d %s (required %d, price %d)",
                amount, to, collateral_in, asset, plan.required_collateral, plan.price,
            )

    def burn(self, tx: TxContext, holder: str, amount: int, asset: str) -> int:
        """
        Сжигание amount токенов у holder с возвратом collateral по spot.

        Returns:
            Возвращённое количество collateral

        Raises:
            Unauthorized, OperationPaused, ReentrantCall, UserBlacklisted,
            CollateralNotSupported, InvalidAmount, BurnLimitExceeded,
            InsufficientCollateral, InsufficientBalance, OracleError,
            CustodyTransferFailed
        """
        with self._operation("burn", tx), self._non_reentrant():
            self._require_role(Role.BURNER, tx)
            self._require_not_paused()
            self._require_amounts(amount=amount)

            plan = self.ledger.plan_burn(self._state, holder, amount, asset, self._price_reader(tx.timestamp))
            self._push(asset, holder, plan.collateral_return)

            self._commit(plan.new_state, [
                self._event(
                    EventType.BURN,
                    tx,
                    amount=amount,
                    primary_actor=holder,
                    secondary_asset=asset,
                    secondary_amount=plan.collateral_return,
                    resulting_total=plan.new_state.token.total_supply,
                )
            ])
            logger.info("burn %d from %s returning %d %s", amount, holder, plan.collateral_return, asset)
            return plan.collateral_return

    # =========================================================================
    # TOKEN HOOKS
    # =========================================================================

    def transfer(self, tx: TxContext, to: str, amount: int) -> None:
        """Перевод с blacklist hook."""
        with self._operation("transfer", tx):
            self._require_not_paused()
            self._require_not_blacklisted(tx.caller, to)
            token = move(self._state.token, tx.caller, to, amount)
            self._commit_transfer(tx, tx.caller, to, amount, token)

    def transfer_from(self, tx: TxContext, owner: str, to: str, amount: int) -> None:
        """Перевод по allowance с blacklist hook (проверяются owner, получатель и spender)."""
        with self._operation("transfer_from", tx):
            self._require_not_paused()
            self._require_not_blacklisted(owner, to, tx.caller)
            token = spend_allowance(self._state.token, owner, tx.caller, amount)
            token = move(token, owner, to, amount)
            self._commit_transfer(tx, owner, to, amount, token)

    def approve(self, tx: TxContext, spender: str, amount: int) -> None:
        """Allowance с тем же hook: pause и blacklist владельца и spender."""
        with self._operation("approve", tx):
            self._require_not_paused()
            self._require_not_blacklisted(tx.caller, spender)
            token = set_allowance(self._state.token, tx.caller, spender, amount)
            self._commit(self._state.model_copy(update={"token": token}), [
                self._event(
                    EventType.APPROVAL,
                    tx,
                    amount=amount,
                    secondary_asset=spender,
                    resulting_total=token.total_supply,
                )
            ])

    def _require_not_blacklisted(self, *accounts: str) -> None:
        for account in accounts:
            if self._state.compliance_of(account).blacklisted:
                raise UserBlacklisted(account)

    def _commit_transfer(self, tx: TxContext, sender: str, to: str, amount: int, token: TokenLedgerState) -> None:
        self._commit(self._state.model_copy(update={"token": token}), [
            self._event(
                EventType.TRANSFER,
                tx,
                amount=amount,
                primary_actor=sender,
                secondary_asset=to,
                resulting_total=token.total_supply,
            )
        ])

    # =========================================================================
    # COMPLIANCE
    # =========================================================================

    def set_kyc_status(self, tx: TxContext, account: str, verified: bool) -> None:
        self._require_role(Role.KYC_OPERATOR, tx)
        self._apply_compliance(tx, EventType.KYC_STATUS_UPDATED, {account: {"kyc_verified": verified}})

    def set_kyc_status_batch(self, tx: TxContext, accounts: Sequence[str], statuses: Sequence[bool]) -> None:
        """
        Атомарное batch обновление KYC.

        Raises:
            BatchLengthMismatch: до любой мутации
        """
        self._require_role(Role.KYC_OPERATOR, tx)
        if len(accounts) != len(statuses):
            raise BatchLengthMismatch(
                f"accounts ({len(accounts)}) and statuses ({len(statuses)}) length mismatch"
            )
        self._apply_compliance(
            tx,
            EventType.KYC_STATUS_UPDATED,
            {account: {"kyc_verified": status} for account, status in zip(accounts, statuses)},
        )

    def set_blacklist_status(self, tx: TxContext, account: str, blacklisted: bool) -> None:
        self._require_role(Role.COMPLIANCE, tx)
        self._apply_compliance(tx, EventType.BLACKLIST_STATUS_UPDATED, {account: {"blacklisted": blacklisted}})

    def _apply_compliance(self, tx: TxContext, event_type: EventType, updates: dict) -> None:
        compliance = dict(self._state.compliance)
        events = []
        for account, update in updates.items():
            record = compliance.get(account, UserComplianceRecord())
            new_record = record.model_copy(update=update)
            if new_record == record:
                continue
            compliance[account] = new_record
            flag = next(iter(update.values()))
            events.append(
                self._event(event_type, tx, amount=int(flag), primary_actor=account, resulting_total=len(compliance))
            )
            logger.info("%s %s=%s by %s", event_type.value, account, flag, tx.caller)

        if events:
            self._commit(self._state.model_copy(update={"compliance": compliance}), events)

    # =========================================================================
    # ADMIN
    # =========================================================================

    def set_collateral_support(
        self,
        tx: TxContext,
        asset: str,
        supported: bool,
        feed_id: Optional[str] = None,
    ) -> None:
        """Создание/переключение collateral актива. Актив никогда не удаляется."""
        self._require_role(Role.DEFAULT_ADMIN, tx)
        if not asset:
            raise InvalidConfiguration("Asset id cannot be empty")
        current = self._state.assets.get(asset)
        record = Asset(
            asset_id=asset,
            supported=supported,
            feed_id=feed_id if feed_id is not None else (current.feed_id if current else None),
        )
        if record == current:
            return
        self._commit(self._state.model_copy(update={"assets": {**self._state.assets, asset: record}}), [
            self._event(
                EventType.COLLATERAL_SUPPORT_UPDATED,
                tx,
                amount=int(supported),
                secondary_asset=asset,
                secondary_amount=self._state.reserve_of(asset),
                resulting_total=sum(1 for a in self._state.assets.values() if a.supported) + (
                    int(supported) - int(bool(current and current.supported))
                ),
            )
        ])
        logger.info("collateral %s supported=%s by %s", asset, supported, tx.caller)

    def update_params(self, tx: TxContext, **changes) -> ReserveCoinParams:
        """
        Обновление min ratio и лимитов.

        Raises:
            InvalidConfiguration: Если параметры не проходят валидацию
        """
        self._require_role(Role.DEFAULT_ADMIN, tx)
        params = self._validated_params(self._state.params, changes)
        self._commit(self._state.model_copy(update={"params": params}), [
            self._event(
                EventType.PARAMS_UPDATED,
                tx,
                amount=params.min_collateral_ratio_bps,
                resulting_total=self._state.token.total_supply,
            )
        ])
        logger.info("reserve coin params updated by %s: %s", tx.caller, params)
        return params
