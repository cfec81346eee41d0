"""Issuance — контроллеры трёх вариантов токена.

- ReserveCoinController: fully-collateralized, KYC/compliance (vltUSD)
- AlgorithmicCoinController: over-collateralized ETH/LSD позиции с ликвидацией (vltUSDe)
- YieldVaultController: yield-bearing vault (vltUSDY)
"""

from .algorithmic_coin import AlgorithmicCoinController
from .controller import ControllerConfig, IssuanceController
from .custody import CustodyGateway, InMemoryCustody
from .reserve_coin import ReserveCoinController
from .yield_vault import YieldVaultController

__all__ = [
    "ControllerConfig",
    "IssuanceController",
    "CustodyGateway",
    "InMemoryCustody",
    "ReserveCoinController",
    "AlgorithmicCoinController",
    "YieldVaultController",
]
