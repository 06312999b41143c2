"""
Unit tests for symbol remapping and venue stream protocols.
"""

import orjson
import pytest

from crossarb.config.exchanges import SYMBOL_MAPPINGS
from crossarb.market.protocols import (
    PROTOCOLS,
    BinanceProtocol,
    BybitProtocol,
    CoinbaseProtocol,
    KrakenProtocol,
    OkxProtocol,
    get_protocol,
)
from crossarb.market.symbols import SymbolMapper, format_symbol, split_symbol


class TestFormatSymbol:
    """Tests for native -> canonical conversion."""

    @pytest.mark.parametrize(
        ("native", "expected"),
        [
            ("BTCUSDT", "BTC/USDT"),
            ("btcusdt", "BTC/USDT"),
            ("ETH-USDT", "ETH/USDT"),
            ("ETH-USDT-SPOT", "ETH/USDT"),
            ("MATIC_USDT", "MATIC/USDT"),
            ("SOL/USDC", "SOL/USDC"),
            ("ETHBTC", "ETH/BTC"),
            ("BTCUSD", "BTC/USD"),
            ("UNKNOWN", "UNKNOWN"),
        ],
    )
    def test_format(self, native: str, expected: str) -> None:
        assert format_symbol(native) == expected

    def test_split_symbol(self) -> None:
        assert split_symbol("DOGE/USDT") == ("DOGE", "USDT")


class TestSymbolMapper:
    """Tests for per-venue symbol tables."""

    def test_explicit_mapping(self) -> None:
        mapper = SymbolMapper(SYMBOL_MAPPINGS["okx"])

        assert mapper.to_native("BTC/USDT") == "BTC-USDT-SPOT"
        assert mapper.to_canonical("BTC-USDT-SPOT") == "BTC/USDT"
        assert "BTC/USDT" in mapper

    def test_identity_fallback(self) -> None:
        mapper = SymbolMapper()

        assert mapper.to_native("BTC/USDT") == "BTC/USDT"
        assert mapper.to_canonical("XRPUSDT") == "XRP/USDT"
        assert len(mapper) == 0

    def test_with_mapping_layers(self) -> None:
        mapper = SymbolMapper({"A/B": "AB"}).with_mapping({"C/D": "C-D"})

        assert mapper.as_dict() == {"A/B": "AB", "C/D": "C-D"}


class TestStreamProtocols:
    """Tests for venue subscribe frames and parsers."""

    def test_registry(self) -> None:
        assert set(PROTOCOLS) == {"binance", "bybit", "okx", "kraken", "coinbase"}
        assert get_protocol("gate") is None
        assert isinstance(get_protocol("binance"), BinanceProtocol)

    def test_binance_url_and_parse(self) -> None:
        protocol = BinanceProtocol()

        url = protocol.build_url("wss://stream.binance.com:9443/stream", ["BTC/USDT", "ETH/USDT"])
        ticks = protocol.parse(
            {"stream": "btcusdt@bookTicker", "data": {"s": "BTCUSDT", "b": "42000.1", "a": "42000.2"}}
        )

        assert url == "wss://stream.binance.com:9443/stream?streams=btcusdt@bookTicker/ethusdt@bookTicker"
        assert protocol.subscribe_messages(["BTC/USDT"]) == []
        assert ticks == [("BTCUSDT", 42000.1, 42000.2)]

    def test_bybit(self) -> None:
        protocol = BybitProtocol()

        [frame] = protocol.subscribe_messages(["BTC/USDT"])
        ticks = protocol.parse(
            {
                "topic": "orderbook.1.BTCUSDT",
                "type": "snapshot",
                "data": {"s": "BTCUSDT", "b": [["42000.0", "1.2"]], "a": [["42001.0", "0.5"]]},
            }
        )

        assert orjson.loads(frame) == {"op": "subscribe", "args": ["orderbook.1.BTCUSDT"]}
        assert ticks == [("BTCUSDT", 42000.0, 42001.0)]
        assert protocol.parse({"success": True, "op": "subscribe"}) == []

    def test_bybit_one_sided_delta_ignored(self) -> None:
        protocol = BybitProtocol()

        ticks = protocol.parse(
            {"topic": "orderbook.1.BTCUSDT", "type": "delta", "data": {"s": "BTCUSDT", "b": [], "a": [["1", "2"]]}}
        )

        assert ticks == []

    def test_bybit_non_object_payload_raises(self) -> None:
        with pytest.raises(TypeError):
            BybitProtocol().parse({"topic": "orderbook.1.BTCUSDT", "data": "oops"})

    def test_okx(self) -> None:
        protocol = OkxProtocol()

        [frame] = protocol.subscribe_messages(["ETH/USDT"])
        ticks = protocol.parse({"arg": {}, "data": [{"instId": "ETH-USDT", "bidPx": "2500.5", "askPx": "2500.6"}]})

        assert orjson.loads(frame)["args"] == [{"channel": "tickers", "instId": "ETH-USDT"}]
        assert ticks == [("ETH-USDT", 2500.5, 2500.6)]

    def test_kraken(self) -> None:
        protocol = KrakenProtocol()

        [frame] = protocol.subscribe_messages(["BTC/USDT", "ETH/USDT"])
        ticks = protocol.parse([42, {"a": ["42001.0", 1, "1.0"], "b": ["42000.0", 2, "2.0"]}, "ticker", "XBT/USDT"])

        assert orjson.loads(frame)["pair"] == ["XBT/USDT", "ETH/USDT"]
        assert ticks == [("XBT/USDT", 42000.0, 42001.0)]
        assert protocol.parse({"event": "heartbeat"}) == []

    def test_coinbase(self) -> None:
        protocol = CoinbaseProtocol()

        [frame] = protocol.subscribe_messages(["SOL/USDT"])
        ticks = protocol.parse({"type": "ticker", "product_id": "SOL-USDT", "best_bid": "99.1", "best_ask": "99.2"})

        assert orjson.loads(frame) == {
            "type": "subscribe",
            "product_ids": ["SOL-USDT"],
            "channels": ["ticker"],
        }
        assert ticks == [("SOL-USDT", 99.1, 99.2)]
        assert protocol.parse({"type": "subscriptions"}) == []

    def test_malformed_frame_raises(self) -> None:
        with pytest.raises(KeyError):
            BinanceProtocol().parse({"data": {"s": "BTCUSDT"}})
        with pytest.raises(ValueError):
            CoinbaseProtocol().parse({"type": "ticker", "product_id": "X-Y", "best_bid": "abc", "best_ask": "1"})
