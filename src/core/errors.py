"""
Errors — таксономия ошибок issuance engine

Каждая ошибка прерывает операцию целиком (zero state mutation).
Внутри ядра ошибки не перехватываются и не ретраятся — решение о повторе
принимает вызывающая сторона.

Категории:
- AuthorizationError: нет роли / blacklist / нет KYC
- InputValidationError: нулевые суммы, неподдерживаемый актив, битый batch
- EconomicInvariantError: недостаточный collateral, ratio ниже минимума, лимиты
- OracleError: неизвестный актив, невалидная или устаревшая котировка
- OperationalError: pause, reentrancy, слишком частое обновление ставки

У каждого класса стабильный `code`, чтобы UI/tools различали
"исправьте вход" / "рынок изменился" / "повторите позже".
"""


class IssuanceError(Exception):
    """Базовый класс всех ошибок ядра."""

    code: str = "issuance_error"
    category: str = "generic"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


# =============================================================================
# AUTHORIZATION
# =============================================================================


class AuthorizationError(IssuanceError):
    category = "authorization"


class Unauthorized(AuthorizationError):
    code = "unauthorized"

    def __init__(self, account: str, role: str):
        super().__init__(f"Account {account!r} is missing role {role}")
        self.account = account
        self.role = role


class UserBlacklisted(AuthorizationError):
    code = "user_blacklisted"

    def __init__(self, account: str):
        super().__init__(f"Account {account!r} is blacklisted")
        self.account = account


class KYCNotVerified(AuthorizationError):
    code = "kyc_not_verified"

    def __init__(self, account: str):
        super().__init__(f"Account {account!r} has not passed KYC")
        self.account = account


# =============================================================================
# INPUT VALIDATION
# =============================================================================


class InputValidationError(IssuanceError):
    category = "input_validation"


class InvalidAmount(InputValidationError):
    code = "invalid_amount"


class CollateralNotSupported(InputValidationError):
    code = "collateral_not_supported"

    def __init__(self, asset: str):
        super().__init__(f"Collateral {asset!r} is not supported")
        self.asset = asset


class LSDNotSupported(InputValidationError):
    code = "lsd_not_supported"

    def __init__(self, asset: str):
        super().__init__(f"Liquid staking derivative {asset!r} is not registered")
        self.asset = asset


class BatchLengthMismatch(InputValidationError):
    code = "batch_length_mismatch"


class InvalidConfiguration(InputValidationError):
    code = "invalid_configuration"


# =============================================================================
# ECONOMIC INVARIANTS
# =============================================================================


class EconomicInvariantError(IssuanceError):
    category = "economic_invariant"


class InsufficientCollateral(EconomicInvariantError):
    code = "insufficient_collateral"

    def __init__(self, required: int, provided: int):
        super().__init__(f"Insufficient collateral: required={required}, provided={provided}")
        self.required = required
        self.provided = provided


class InvalidCollateralRatio(EconomicInvariantError):
    code = "invalid_collateral_ratio"


class PositionNotLiquidatable(EconomicInvariantError):
    code = "position_not_liquidatable"


class MintLimitExceeded(EconomicInvariantError):
    code = "mint_limit_exceeded"


class BurnLimitExceeded(EconomicInvariantError):
    code = "burn_limit_exceeded"


class InsufficientDebt(EconomicInvariantError):
    code = "insufficient_debt"


class InsufficientBalance(EconomicInvariantError):
    code = "insufficient_balance"


class InsufficientAllowance(EconomicInvariantError):
    code = "insufficient_allowance"


class InsufficientLiquidity(EconomicInvariantError):
    code = "insufficient_liquidity"


# =============================================================================
# ORACLE
# =============================================================================


class OracleError(IssuanceError):
    category = "oracle"


class UnknownAsset(OracleError):
    code = "unknown_asset"

    def __init__(self, asset: str):
        super().__init__(f"No price feed registered for {asset!r}")
        self.asset = asset


class InvalidQuote(OracleError):
    code = "invalid_quote"


class StalePrice(OracleError):
    code = "stale_price"

    def __init__(self, asset: str, age: int, max_age: int):
        super().__init__(f"Price for {asset!r} is stale: age={age}s > max_age={max_age}s")
        self.asset = asset
        self.age = age
        self.max_age = max_age


# =============================================================================
# OPERATIONAL
# =============================================================================


class OperationalError(IssuanceError):
    category = "operational"


class OperationPaused(OperationalError):
    code = "operation_paused"


class ReentrantCall(OperationalError):
    code = "reentrant_call"


class YieldUpdateTooFrequent(OperationalError):
    code = "yield_update_too_frequent"


class CustodyTransferFailed(OperationalError):
    code = "custody_transfer_failed"
