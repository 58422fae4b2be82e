"""Price feed interface for PerpLedger."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import BaseModel, Field

# Supported perpetual markets
MARKET_SYMBOLS = [
    "BTCUSDT",
    "ETHUSDT",
    "SOLUSDT",
    "BNBUSDT",
    "XRPUSDT",
    "DOGEUSDT",
    "SUIUSDT",
]

DEFAULT_PRICES = {
    "BTCUSDT": 68000.0,
    "ETHUSDT": 2020.0,
    "SOLUSDT": 83.0,
    "BNBUSDT": 618.0,
    "XRPUSDT": 1.38,
    "DOGEUSDT": 0.093,
    "SUIUSDT": 0.93,
}


class PriceData(BaseModel):
    """Represents the current mark price and 24h statistics for a market."""

    symbol: str = Field(..., min_length=1, description="Market symbol")
    price: float = Field(..., gt=0, description="Current mark price")
    change_24h: float = Field(default=0.0, description="24h absolute change")
    change_percent_24h: float = Field(default=0.0, description="24h percentage change")
    volume_24h: float = Field(default=0.0, ge=0, description="24h volume")
    high_24h: float = Field(default=0.0, ge=0, description="24h high")
    low_24h: float = Field(default=0.0, ge=0, description="24h low")
    last_update: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Time of the last update",
    )

    model_config = {"frozen": True}


class BasePriceFeed(ABC):
    """Abstract base class for price feeds.

    The ledger never fetches prices itself. Callers read a feed and pass
    plain prices into settlement and valuation calls.
    """

    @abstractmethod
    def get_price(self, symbol: str) -> PriceData:
        """Get current price data for a symbol.

        Args:
            symbol: Market symbol.

        Returns:
            PriceData for the symbol.

        Raises:
            KeyError: If the feed has no price for the symbol.
        """
        pass

    @abstractmethod
    def get_prices(self, symbols: Optional[Iterable[str]] = None) -> dict[str, PriceData]:
        """Get price data for several symbols.

        Args:
            symbols: Symbols to fetch. All known symbols when None.

        Returns:
            Mapping of symbol to PriceData; unknown symbols are omitted.
        """
        pass


def price_map(feed: BasePriceFeed, symbols: Optional[Iterable[str]] = None) -> dict[str, float]:
    """Flatten a feed into the symbol -> price mapping the ledger consumes."""
    return {symbol: data.price for symbol, data in feed.get_prices(symbols).items()}
