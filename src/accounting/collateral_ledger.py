"""CollateralLedger — резервы fully-collateralized stablecoin (vltUSD).

Формулы:
- required_collateral = amount * min_ratio_bps * 1e8 / (price * 10000)
- collateral_return   = amount * 1e8 / price   (без ratio multiplier)
- collateral_ratio    = reserve_value_usd(asset) * 10000 / total_supply

Асимметрия mint/burn сохранена как есть: mint требует collateral по
ratio-grossed курсу, burn возвращает по spot 1:1.

Порядок проверок mint (все до чтения цены и до мутации):
1. KYC получателя
2. Blacklist получателя
3. Поддержка collateral
4. Нулевые суммы
5. Кумулятивный mint лимит
6. Достаточность collateral (нужна цена)

Ledger не хранит состояние: plan_* принимает снапшот и возвращает новый.
"""

from dataclasses import dataclass

from src.core.domain.quote import PriceReader
from src.core.domain.ratio import Ratio
from src.core.domain.reserve_state import ReserveCoinState
from src.core.domain.token_ledger import destroy, issue
from src.core.domain.units import BPS_SCALE, PRICE_SCALE, amount_for_value, ratio_bps, value_in_usd
from src.core.errors import (
    BurnLimitExceeded,
    CollateralNotSupported,
    InsufficientCollateral,
    InvalidAmount,
    KYCNotVerified,
    MintLimitExceeded,
    UserBlacklisted,
)
from src.core.math.fixed_point import mul_div


@dataclass(frozen=True)
class ReserveMintPlan:
    """Результат планирования mint."""

    new_state: ReserveCoinState
    price: int
    required_collateral: int
    resulting_reserve: int


@dataclass(frozen=True)
class ReserveBurnPlan:
    """Результат планирования burn."""

    new_state: ReserveCoinState
    price: int
    collateral_return: int
    resulting_reserve: int


class CollateralLedger:
    """Расчёты и переходы резервов reserve coin."""

    @staticmethod
    def required_collateral(amount: int, price: int, min_ratio_bps: int) -> int:
        """
        Минимальный collateral для mint amount по цене price.

        Округление вниз: ровно required_collateral проходит, на единицу
        меньше — нет.
        """
        return mul_div(amount * min_ratio_bps, PRICE_SCALE, price * BPS_SCALE)

    @staticmethod
    def collateral_return(amount: int, price: int) -> int:
        """Collateral, возвращаемый при burn amount (spot 1:1)."""
        return amount_for_value(amount, price)

    def plan_mint(
        self,
        state: ReserveCoinState,
        to: str,
        amount: int,
        asset: str,
        collateral_in: int,
        read_price: PriceReader,
    ) -> ReserveMintPlan:
        """
        Планирование mint amount токенов получателю to.

        Raises:
            KYCNotVerified, UserBlacklisted, CollateralNotSupported,
            InvalidAmount, MintLimitExceeded, InsufficientCollateral,
            OracleError (из read_price)
        """
        record = state.compliance_of(to)
        if not record.kyc_verified:
            raise KYCNotVerified(to)
        if record.blacklisted:
            raise UserBlacklisted(to)
        if not state.is_supported(asset):
            raise CollateralNotSupported(asset)
        if amount == 0 or collateral_in == 0:
            raise InvalidAmount(f"Mint amount and collateral must be positive: amount={amount}, collateral={collateral_in}")

        limit = state.params.mint_limit_per_user
        if limit is not None and record.mint_limit_used + amount > limit:
            raise MintLimitExceeded(
                f"Mint of {amount} exceeds limit {limit} for {to!r} (used {record.mint_limit_used})"
            )

        price = read_price(asset).value
        required = self.required_collateral(amount, price, state.params.min_collateral_ratio_bps)
        if collateral_in < required:
            raise InsufficientCollateral(required, collateral_in)

        resulting_reserve = state.reserve_of(asset) + collateral_in
        new_state = state.model_copy(
            update={
                "reserves": {**state.reserves, asset: resulting_reserve},
                "total_reserves": state.total_reserves + collateral_in,
                "token": issue(state.token, to, amount),
                "compliance": {
                    **state.compliance,
                    to: record.model_copy(update={"mint_limit_used": record.mint_limit_used + amount}),
                },
            }
        )
        return ReserveMintPlan(
            new_state=new_state,
            price=price,
            required_collateral=required,
            resulting_reserve=resulting_reserve,
        )

    def plan_burn(
        self,
        state: ReserveCoinState,
        holder: str,
        amount: int,
        asset: str,
        read_price: PriceReader,
    ) -> ReserveBurnPlan:
        """
        Планирование burn amount токенов у holder с возвратом collateral.

        Raises:
            UserBlacklisted, CollateralNotSupported, InvalidAmount,
            BurnLimitExceeded, InsufficientCollateral, InsufficientBalance
        """
        record = state.compliance_of(holder)
        if record.blacklisted:
            raise UserBlacklisted(holder)
        if not state.is_supported(asset):
            raise CollateralNotSupported(asset)
        if amount == 0:
            raise InvalidAmount("Burn amount must be positive")

        limit = state.params.burn_limit_per_user
        if limit is not None and record.burn_limit_used + amount > limit:
            raise BurnLimitExceeded(
                f"Burn of {amount} exceeds limit {limit} for {holder!r} (used {record.burn_limit_used})"
            )

        price = read_price(asset).value
        collateral_out = self.collateral_return(amount, price)
        reserve = state.reserve_of(asset)
        if collateral_out > reserve:
            raise InsufficientCollateral(collateral_out, reserve)

        resulting_reserve = reserve - collateral_out
        new_state = state.model_copy(
            update={
                "reserves": {**state.reserves, asset: resulting_reserve},
                "total_reserves": state.total_reserves - collateral_out,
                "token": destroy(state.token, holder, amount),
                "compliance": {
                    **state.compliance,
                    holder: record.model_copy(update={"burn_limit_used": record.burn_limit_used + amount}),
                },
            }
        )
        return ReserveBurnPlan(
            new_state=new_state,
            price=price,
            collateral_return=collateral_out,
            resulting_reserve=resulting_reserve,
        )

    @staticmethod
    def reserve_value_usd(state: ReserveCoinState, asset: str, read_price: PriceReader) -> int:
        """Стоимость резерва asset; котировка читается и при нулевом резерве."""
        price = read_price(asset).value
        return value_in_usd(state.reserve_of(asset), price)

    def collateral_ratio(self, state: ReserveCoinState, asset: str, read_price: PriceReader) -> Ratio:
        """Ratio резерва asset к всему выпущенному supply; UNDEFINED при нулевом supply."""
        supply = state.token.total_supply
        if supply == 0:
            return Ratio.undefined()
        return Ratio.of(ratio_bps(self.reserve_value_usd(state, asset, read_price), supply))

    @staticmethod
    def total_reserves_usd(state: ReserveCoinState, read_price: PriceReader) -> int:
        """
        Суммарная стоимость резервов в USD.

        Выключенные активы пропускаются, даже если баланс ненулевой:
        отключение актива выводит его из отчётного backing без
        принудительного разворота.
        """
        total = 0
        for asset_id, record in state.assets.items():
            reserve = state.reserve_of(asset_id)
            if not record.supported or reserve == 0:
                continue
            total += value_in_usd(reserve, read_price(asset_id).value)
        return total
