"""In-memory price feed."""

import threading
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

from perpledger.feeds.base import DEFAULT_PRICES, BasePriceFeed, PriceData


class StaticPriceFeed(BasePriceFeed):
    """Price feed backed by a mapping that callers update explicitly.

    Used by the CLI (seeded from config) and by tests. A streaming
    collaborator can push ticks through ``update``.
    """

    def __init__(self, prices: Optional[Mapping[str, float]] = None):
        """Initialize the feed.

        Args:
            prices: Initial symbol -> price mapping. Defaults to DEFAULT_PRICES.
        """
        self._lock = threading.Lock()
        self._data: dict[str, PriceData] = {}
        for symbol, price in (DEFAULT_PRICES if prices is None else prices).items():
            self.update(symbol, price)

    def update(self, symbol: str, price: float) -> PriceData:
        """Record a new price, rolling 24h high/low and change.

        Args:
            symbol: Market symbol.
            price: New price.

        Returns:
            The stored PriceData.
        """
        symbol = symbol.upper()
        with self._lock:
            previous = self._data.get(symbol)
            if previous is None:
                data = PriceData(symbol=symbol, price=price, high_24h=price, low_24h=price)
            else:
                # Change is measured from the first price seen
                reference = previous.price - previous.change_24h
                change = price - reference
                data = PriceData(
                    symbol=symbol,
                    price=price,
                    change_24h=change,
                    change_percent_24h=(change / reference * 100) if reference > 0 else 0.0,
                    volume_24h=previous.volume_24h,
                    high_24h=max(previous.high_24h, price),
                    low_24h=min(previous.low_24h, price),
                    last_update=datetime.now(timezone.utc),
                )
            self._data[symbol] = data
            return data

    def get_price(self, symbol: str) -> PriceData:
        with self._lock:
            return self._data[symbol.upper()]

    def get_prices(self, symbols: Optional[Iterable[str]] = None) -> dict[str, PriceData]:
        with self._lock:
            if symbols is None:
                return dict(self._data)
            wanted = {s.upper() for s in symbols}
            return {s: d for s, d in self._data.items() if s in wanted}
