"""
TxContext — контекст транзакции от host ledger

caller — аутентифицированный идентификатор аккаунта (ядро ему доверяет).
timestamp — время блока, единое для всей операции.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TxContext:
    """Контекст вызова операции."""

    caller: str
    timestamp: int

    def __post_init__(self):
        if not self.caller:
            raise ValueError("TxContext.caller cannot be empty")
        if self.timestamp < 0:
            raise ValueError(f"TxContext.timestamp cannot be negative: {self.timestamp}")
