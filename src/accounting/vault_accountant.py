"""VaultAccountant — share/asset конверсия и yield buffer vault (vltUSDY).

total_assets() = total_assets_held + yield_buffer

Начисление (accrue, вызывается первым в каждой state-changing операции):
    если now - last_accrual >= accrual_period:
        если total_assets() > 0:
            accrued = total_assets * yield_rate_bps * accrual_period / (365d * 10000)
            yield_buffer += accrued, total_yield_accrued += accrued
        last_accrual = now
За один вызов начисляется ровно один период.

Атрибуция (attribute, после каждой deposit/mint/withdraw/redeem):
    share = yield_buffer * user_shares / total_shares
    earned[user] += share, yield_buffer -= share
Yield атрибутируется в момент взаимодействия, а не непрерывно.

Инвариант сохранения:
    sum(earned) + yield_buffer + total_yield_claimed == total_yield_accrued

Округление previews:
    deposit/redeem → вниз, mint/withdraw → вверх (в пользу vault).
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from src.core.domain.token_ledger import destroy, issue, spend_allowance
from src.core.domain.units import BPS_SCALE, PRICE_SCALE, SECONDS_PER_YEAR
from src.core.domain.vault_state import UserYieldRecord, YieldVaultLedgerState, YieldVaultParams
from src.core.errors import InsufficientLiquidity, InvalidAmount
from src.core.math.fixed_point import Rounding, clamp, mul_div


@dataclass(frozen=True)
class VaultPlan:
    """Результат планирования deposit/mint/withdraw/redeem."""

    new_state: YieldVaultLedgerState
    assets: int
    shares: int
    accrued: int
    attributed: int


@dataclass(frozen=True)
class ClaimPlan:
    """Результат планирования claim_yield."""

    new_state: YieldVaultLedgerState
    amount: int
    accrued: int


class VaultAccountant:
    """Расчёты и переходы vault."""

    # =========================================================================
    # YIELD
    # =========================================================================

    @staticmethod
    def accrue(state: YieldVaultLedgerState, now: int) -> Tuple[YieldVaultLedgerState, int]:
        """
        Начисление yield за один период.

        Returns:
            (новый снапшот, начисленная сумма); до истечения периода
            возвращается исходный снапшот и 0
        """
        vault = state.vault
        period = state.params.accrual_period
        if now - vault.last_accrual < period:
            return state, 0

        total_assets = state.total_assets()
        if total_assets == 0:
            # Пустой vault: период сдвигается без начисления
            return state.model_copy(update={"vault": vault.model_copy(update={"last_accrual": now})}), 0

        accrued = mul_div(total_assets * vault.yield_rate_bps, period, SECONDS_PER_YEAR * BPS_SCALE)
        new_vault = vault.model_copy(
            update={
                "yield_buffer": vault.yield_buffer + accrued,
                "total_yield_accrued": vault.total_yield_accrued + accrued,
                "last_accrual": now,
            }
        )
        return state.model_copy(update={"vault": new_vault}), accrued

    @staticmethod
    def attribute(state: YieldVaultLedgerState, account: str, now: int) -> Tuple[YieldVaultLedgerState, int]:
        """
        Атрибуция pro-rata доли текущего buffer пользователю.

        Returns:
            (новый снапшот, атрибутированная сумма)
        """
        record = state.yield_of(account)
        total_shares = state.total_shares
        user_shares = state.token.balance_of(account)
        vault = state.vault

        share = 0
        if total_shares > 0 and user_shares > 0 and vault.yield_buffer > 0:
            share = mul_div(vault.yield_buffer, user_shares, total_shares)

        new_record = UserYieldRecord(earned=record.earned + share, last_touched=now)
        new_state = state.model_copy(
            update={
                "vault": vault.model_copy(update={"yield_buffer": vault.yield_buffer - share}),
                "user_yield": {**state.user_yield, account: new_record},
            }
        )
        return new_state, share

    @staticmethod
    def clamp_rate(rate_bps: int, params: YieldVaultParams) -> int:
        return clamp(rate_bps, params.min_yield_rate_bps, params.max_yield_rate_bps)

    @staticmethod
    def rate_from_quote(value: int) -> int:
        """Reference rate из оракула (1e8 = 100% годовых) → bps."""
        return mul_div(value, BPS_SCALE, PRICE_SCALE)

    # =========================================================================
    # PREVIEWS
    # =========================================================================

    @staticmethod
    def preview_deposit(state: YieldVaultLedgerState, assets: int) -> int:
        supply, total = state.total_shares, state.total_assets()
        if supply == 0 or total == 0:
            return assets
        return mul_div(assets, supply, total, Rounding.FLOOR)

    @staticmethod
    def preview_mint(state: YieldVaultLedgerState, shares: int) -> int:
        supply, total = state.total_shares, state.total_assets()
        if supply == 0 or total == 0:
            return shares
        return mul_div(shares, total, supply, Rounding.CEIL)

    @staticmethod
    def preview_withdraw(state: YieldVaultLedgerState, assets: int) -> int:
        supply, total = state.total_shares, state.total_assets()
        if supply == 0 or total == 0:
            return 0
        return mul_div(assets, supply, total, Rounding.CEIL)

    @staticmethod
    def preview_redeem(state: YieldVaultLedgerState, shares: int) -> int:
        supply = state.total_shares
        if supply == 0:
            return 0
        return mul_div(shares, state.total_assets(), supply, Rounding.FLOOR)

    def convert_to_shares(self, state: YieldVaultLedgerState, assets: int) -> int:
        return self.preview_deposit(state, assets)

    def convert_to_assets(self, state: YieldVaultLedgerState, shares: int) -> int:
        return self.preview_redeem(state, shares)

    def max_withdraw(self, state: YieldVaultLedgerState, owner: str) -> int:
        return self.preview_redeem(state, state.token.balance_of(owner))

    @staticmethod
    def max_redeem(state: YieldVaultLedgerState, owner: str) -> int:
        return state.token.balance_of(owner)

    # =========================================================================
    # ПЕРЕХОДЫ
    # =========================================================================

    def plan_deposit(self, state: YieldVaultLedgerState, receiver: str, assets: int, now: int) -> VaultPlan:
        """Депозит assets с выпуском shares получателю."""
        if assets == 0:
            raise InvalidAmount("Deposit amount must be positive")
        staged, accrued = self.accrue(state, now)
        shares = self.preview_deposit(staged, assets)
        if shares == 0:
            raise InvalidAmount(f"Deposit of {assets} yields zero shares")
        return self._enter(staged, receiver, assets, shares, accrued, now)

    def plan_mint(self, state: YieldVaultLedgerState, receiver: str, shares: int, now: int) -> VaultPlan:
        """Выпуск ровно shares за необходимое количество assets (округление вверх)."""
        if shares == 0:
            raise InvalidAmount("Mint shares must be positive")
        staged, accrued = self.accrue(state, now)
        assets = self.preview_mint(staged, shares)
        return self._enter(staged, receiver, assets, shares, accrued, now)

    def plan_withdraw(
        self,
        state: YieldVaultLedgerState,
        caller: str,
        owner: str,
        assets: int,
        now: int,
    ) -> VaultPlan:
        """Вывод ровно assets со сжиганием необходимых shares (округление вверх)."""
        if assets == 0:
            raise InvalidAmount("Withdraw amount must be positive")
        staged, accrued = self.accrue(state, now)
        shares = self.preview_withdraw(staged, assets)
        if shares == 0:
            raise InvalidAmount(f"Withdraw of {assets} burns zero shares")
        return self._exit(staged, caller, owner, assets, shares, accrued, now)

    def plan_redeem(
        self,
        state: YieldVaultLedgerState,
        caller: str,
        owner: str,
        shares: int,
        now: int,
    ) -> VaultPlan:
        """Сжигание shares с выплатой assets (округление вниз)."""
        if shares == 0:
            raise InvalidAmount("Redeem shares must be positive")
        staged, accrued = self.accrue(state, now)
        assets = self.preview_redeem(staged, shares)
        if assets == 0:
            raise InvalidAmount(f"Redeem of {shares} shares yields zero assets")
        return self._exit(staged, caller, owner, assets, shares, accrued, now)

    def plan_claim(self, state: YieldVaultLedgerState, account: str, now: int) -> Optional[ClaimPlan]:
        """
        Начисление + атрибуция, затем выплата earned из реальных активов.

        Returns:
            None если пользователю ничего не причитается
        """
        staged, accrued = self.accrue(state, now)
        staged, _ = self.attribute(staged, account, now)
        earned = staged.yield_of(account).earned
        if earned == 0:
            return None

        vault = staged.vault
        if earned > vault.total_assets_held:
            raise InsufficientLiquidity(
                f"Claim of {earned} exceeds held assets {vault.total_assets_held}"
            )

        new_state = staged.model_copy(
            update={
                "vault": vault.model_copy(
                    update={
                        "total_assets_held": vault.total_assets_held - earned,
                        "total_yield_claimed": vault.total_yield_claimed + earned,
                    }
                ),
                "user_yield": {**staged.user_yield, account: UserYieldRecord(earned=0, last_touched=now)},
            }
        )
        return ClaimPlan(new_state=new_state, amount=earned, accrued=accrued)

    def _enter(
        self,
        state: YieldVaultLedgerState,
        receiver: str,
        assets: int,
        shares: int,
        accrued: int,
        now: int,
    ) -> VaultPlan:
        vault = state.vault
        staged = state.model_copy(
            update={
                "token": issue(state.token, receiver, shares),
                "vault": vault.model_copy(update={"total_assets_held": vault.total_assets_held + assets}),
            }
        )
        staged, attributed = self.attribute(staged, receiver, now)
        return VaultPlan(new_state=staged, assets=assets, shares=shares, accrued=accrued, attributed=attributed)

    def _exit(
        self,
        state: YieldVaultLedgerState,
        caller: str,
        owner: str,
        assets: int,
        shares: int,
        accrued: int,
        now: int,
    ) -> VaultPlan:
        vault = state.vault
        if assets > vault.total_assets_held:
            raise InsufficientLiquidity(
                f"Withdrawal of {assets} exceeds held assets {vault.total_assets_held}"
            )

        token = spend_allowance(state.token, owner, caller, shares)
        staged = state.model_copy(
            update={
                "token": destroy(token, owner, shares),
                "vault": vault.model_copy(update={"total_assets_held": vault.total_assets_held - assets}),
            }
        )
        staged, attributed = self.attribute(staged, owner, now)
        return VaultPlan(new_state=staged, assets=assets, shares=shares, accrued=accrued, attributed=attributed)
