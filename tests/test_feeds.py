"""Tests for price feeds."""

import pytest

from perpledger.feeds import MARKET_SYMBOLS, StaticPriceFeed, price_map
from perpledger.feeds.base import DEFAULT_PRICES


class TestStaticPriceFeed:
    """
    **Feature: perpledger, Property 24: Static Price Feed**
    """

    def test_defaults_cover_markets(self):
        feed = StaticPriceFeed()

        assert set(feed.get_prices()) == set(MARKET_SYMBOLS)
        assert feed.get_price("BTCUSDT").price == DEFAULT_PRICES["BTCUSDT"]

    def test_symbols_case_insensitive(self):
        feed = StaticPriceFeed({"btcusdt": 100})

        assert feed.get_price("BtcUsdt").price == 100

    def test_unknown_symbol_raises(self):
        feed = StaticPriceFeed({"BTCUSDT": 100})

        with pytest.raises(KeyError):
            feed.get_price("ETHUSDT")

    def test_update_rolls_statistics(self):
        feed = StaticPriceFeed({"BTCUSDT": 100})

        feed.update("BTCUSDT", 110)
        data = feed.update("BTCUSDT", 90)

        assert data.price == 90
        assert data.high_24h == 110
        assert data.low_24h == 90
        assert data.change_24h == pytest.approx(-10)
        assert data.change_percent_24h == pytest.approx(-10)

    def test_get_prices_filters(self):
        feed = StaticPriceFeed({"BTCUSDT": 100, "ETHUSDT": 10})

        assert set(feed.get_prices(["ethusdt", "DOGEUSDT"])) == {"ETHUSDT"}

    def test_price_map(self):
        feed = StaticPriceFeed({"BTCUSDT": 100, "ETHUSDT": 10})

        assert price_map(feed) == {"BTCUSDT": 100, "ETHUSDT": 10}
        assert price_map(feed, ["BTCUSDT"]) == {"BTCUSDT": 100}
