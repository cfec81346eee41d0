"""
TokenLedger — минимальный fungible-token ledger выпущенного токена

Стандартная семантика balance/allowance/supply. Все операции чистые:
принимают снапшот и возвращают новый, исходный не меняется. Кастомные
хуки (blacklist, pause) живут в контроллерах, не здесь.
"""

from typing import Dict, Tuple

from pydantic import BaseModel, Field

from src.core.errors import InsufficientAllowance, InsufficientBalance, InvalidAmount


class TokenMetadata(BaseModel):
    """Метаданные токена."""

    name: str = Field(..., min_length=1)
    symbol: str = Field(..., min_length=1)
    decimals: int = Field(18, ge=0, le=36)

    model_config = {"frozen": True}


class TokenLedgerState(BaseModel):
    """Снапшот балансов выпущенного токена."""

    metadata: TokenMetadata
    total_supply: int = Field(0, ge=0)
    balances: Dict[str, int] = Field(default_factory=dict)
    allowances: Dict[Tuple[str, str], int] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((owner, spender), 0)


def issue(ledger: TokenLedgerState, to: str, amount: int) -> TokenLedgerState:
    """Выпуск amount токенов на счёт to."""
    if amount <= 0:
        raise InvalidAmount(f"Issue amount must be positive, got {amount}")
    balances = dict(ledger.balances)
    balances[to] = balances.get(to, 0) + amount
    return ledger.model_copy(
        update={"balances": balances, "total_supply": ledger.total_supply + amount}
    )


def destroy(ledger: TokenLedgerState, holder: str, amount: int) -> TokenLedgerState:
    """
    Уничтожение amount токенов со счёта holder.

    Raises:
        InsufficientBalance: Если баланс меньше amount
    """
    if amount <= 0:
        raise InvalidAmount(f"Destroy amount must be positive, got {amount}")
    balance = ledger.balance_of(holder)
    if balance < amount:
        raise InsufficientBalance(f"Balance of {holder!r} is {balance}, cannot destroy {amount}")
    balances = dict(ledger.balances)
    balances[holder] = balance - amount
    return ledger.model_copy(
        update={"balances": balances, "total_supply": ledger.total_supply - amount}
    )


def move(ledger: TokenLedgerState, sender: str, recipient: str, amount: int) -> TokenLedgerState:
    """Перевод между счетами; supply не меняется."""
    if amount <= 0:
        raise InvalidAmount(f"Transfer amount must be positive, got {amount}")
    balance = ledger.balance_of(sender)
    if balance < amount:
        raise InsufficientBalance(f"Balance of {sender!r} is {balance}, cannot transfer {amount}")
    balances = dict(ledger.balances)
    balances[sender] = balance - amount
    balances[recipient] = balances.get(recipient, 0) + amount
    return ledger.model_copy(update={"balances": balances})


def set_allowance(ledger: TokenLedgerState, owner: str, spender: str, amount: int) -> TokenLedgerState:
    if amount < 0:
        raise InvalidAmount(f"Allowance cannot be negative, got {amount}")
    allowances = dict(ledger.allowances)
    allowances[(owner, spender)] = amount
    return ledger.model_copy(update={"allowances": allowances})


def spend_allowance(ledger: TokenLedgerState, owner: str, spender: str, amount: int) -> TokenLedgerState:
    """
    Списание allowance; владелец тратит свои токены без allowance.

    Raises:
        InsufficientAllowance: Если allowance меньше amount
    """
    if owner == spender:
        return ledger
    current = ledger.allowance(owner, spender)
    if current < amount:
        raise InsufficientAllowance(
            f"Allowance {owner!r} -> {spender!r} is {current}, need {amount}"
        )
    return set_allowance(ledger, owner, spender, current - amount)
