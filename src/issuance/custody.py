"""Custody transfer collaborator.

Внешний интерфейс перевода collateral. Ошибки коллаборатора не
проглатываются: контроллер оборачивает их в CustodyTransferFailed и
операция прерывается без commit.

InMemoryCustody — in-memory реализация для локального прогона и тестов.
on_transfer_out позволяет смоделировать код получателя, который
вызывается во время перевода (reentrancy сценарии).
"""

from typing import Callable, Dict, Optional, Protocol, Tuple


class CustodyGateway(Protocol):
    """Перевод collateral между пользователем и engine."""

    def transfer_in(self, asset: str, sender: str, amount: int) -> None:
        ...

    def transfer_out(self, asset: str, recipient: str, amount: int) -> None:
        ...


class InMemoryCustody:
    """Балансы (asset, account) и баланс самого engine."""

    ENGINE = "__engine__"

    def __init__(self, on_transfer_out: Optional[Callable[[str, str, int], None]] = None):
        self._balances: Dict[Tuple[str, str], int] = {}
        self.on_transfer_out = on_transfer_out

    def fund(self, asset: str, account: str, amount: int) -> None:
        key = (asset, account)
        self._balances[key] = self._balances.get(key, 0) + amount

    def balance_of(self, asset: str, account: str) -> int:
        return self._balances.get((asset, account), 0)

    def engine_balance(self, asset: str) -> int:
        return self.balance_of(asset, self.ENGINE)

    def transfer_in(self, asset: str, sender: str, amount: int) -> None:
        self._move(asset, sender, self.ENGINE, amount)

    def transfer_out(self, asset: str, recipient: str, amount: int) -> None:
        """Ошибка callback получателя отменяет перевод целиком."""
        self._move(asset, self.ENGINE, recipient, amount)
        if self.on_transfer_out is None:
            return
        try:
            self.on_transfer_out(asset, recipient, amount)
        except Exception:
            self._move(asset, recipient, self.ENGINE, amount)
            raise

    def _move(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        balance = self.balance_of(asset, sender)
        if balance < amount:
            raise ValueError(f"{sender!r} holds {balance} {asset}, cannot transfer {amount}")
        self._balances[(asset, sender)] = balance - amount
        self._balances[(asset, recipient)] = self.balance_of(asset, recipient) + amount
