"""
Unit tests for PriceCache.
"""

from crossarb.market.price_cache import PriceCache
from tests.conftest import NOW_MS


class TestPriceCache:
    """Tests for the shared quote cache."""

    def test_upsert_and_get(self, cache: PriceCache, make_quote) -> None:
        quote = make_quote("binance", bid=50_000.0, ask=50_010.0)

        cache.upsert(quote)

        assert cache.get("BTC/USDT", "binance") == quote
        assert ("BTC/USDT", "binance") in cache
        assert cache.size == 1
        assert cache.update_count == 1

    def test_get_missing(self, cache: PriceCache) -> None:
        assert cache.get("BTC/USDT", "binance") is None
        assert ("BTC/USDT", "binance") not in cache

    def test_last_write_wins(self, cache: PriceCache, make_quote) -> None:
        cache.upsert(make_quote("binance", bid=1.0, ask=2.0))
        cache.upsert(make_quote("binance", bid=3.0, ask=4.0, timestamp=NOW_MS + 1))

        quote = cache.get("BTC/USDT", "binance")
        assert quote is not None
        assert quote.bid == 3.0
        assert cache.size == 1
        assert cache.update_count == 2

    def test_one_entry_per_pair(self, cache: PriceCache, make_quote) -> None:
        cache.upsert(make_quote("binance"))
        cache.upsert(make_quote("kraken"))
        cache.upsert(make_quote("binance", symbol="ETH/USDT"))

        assert len(cache) == 3
        assert cache.symbols() == frozenset({"BTC/USDT", "ETH/USDT"})
        assert cache.exchanges_for("BTC/USDT") == frozenset({"binance", "kraken"})
        assert cache.exchange_count() == 2

    def test_snapshot_is_a_copy(self, cache: PriceCache, make_quote) -> None:
        cache.upsert(make_quote("binance"))

        snapshot = cache.snapshot()
        cache.upsert(make_quote("kraken"))
        snapshot["BTC/USDT"].clear()

        assert "kraken" not in snapshot["BTC/USDT"]
        assert cache.exchanges_for("BTC/USDT") == frozenset({"binance", "kraken"})

    def test_get_symbol(self, cache: PriceCache, make_quote) -> None:
        cache.upsert(make_quote("binance"))

        assert set(cache.get_symbol("BTC/USDT")) == {"binance"}
        assert cache.get_symbol("DOGE/USDT") == {}

    def test_clear(self, cache: PriceCache, make_quote) -> None:
        cache.upsert(make_quote("binance"))

        cache.clear()

        assert cache.size == 0
        assert cache.snapshot() == {}

    def test_to_dict(self, cache: PriceCache, make_quote) -> None:
        cache.upsert(make_quote("binance", bid=1.5, ask=2.5))

        data = cache.to_dict()

        assert data["BTC/USDT"]["binance"] == {
            "exchange": "binance",
            "symbol": "BTC/USDT",
            "bid": 1.5,
            "ask": 2.5,
            "timestamp": NOW_MS,
        }
