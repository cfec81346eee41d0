"""Oracle — валидация цен из внешних price feeds."""

from .feeds import FeedSource, StaticFeedSource
from .price_oracle import OracleConfig, PriceOracle

__all__ = [
    "FeedSource",
    "StaticFeedSource",
    "OracleConfig",
    "PriceOracle",
]
