"""Price feeds for PerpLedger."""

from perpledger.feeds.base import (
    DEFAULT_PRICES,
    MARKET_SYMBOLS,
    BasePriceFeed,
    PriceData,
    price_map,
)
from perpledger.feeds.static import StaticPriceFeed

__all__ = [
    "BasePriceFeed",
    "DEFAULT_PRICES",
    "MARKET_SYMBOLS",
    "PriceData",
    "StaticPriceFeed",
    "price_map",
]
