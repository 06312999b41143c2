"""
Venue WebSocket protocols.

Each protocol knows how to address one exchange's public ticker feed:
the connection URL, the subscribe frames to send once open, and how to
pull best bid/ask tuples out of an inbound frame. No API keys required.
"""

from collections.abc import Iterable
from typing import Any, ClassVar

import orjson

from crossarb.market.symbols import split_symbol


# (native symbol, bid, ask)
BookTick = tuple[str, float, float]


class StreamProtocol:
    """Base class for venue stream protocols."""

    exchange_id: ClassVar[str] = ""

    def native_symbol(self, symbol: str) -> str:
        """Canonical ``BASE/QUOTE`` -> the venue's stream spelling."""
        base, quote = split_symbol(symbol)
        return f"{base}{quote}"

    def build_url(self, ws_url: str, symbols: Iterable[str]) -> str:
        return ws_url

    def subscribe_messages(self, symbols: Iterable[str]) -> list[str]:
        return []

    def parse(self, data: Any) -> list[BookTick]:
        """
        Extract book ticks from a decoded frame.

        Frames that carry no prices (acks, heartbeats) yield an empty list.
        Raises KeyError/IndexError/TypeError/ValueError on malformed frames.
        """
        raise NotImplementedError

    @staticmethod
    def _encode(message: dict[str, Any]) -> str:
        return orjson.dumps(message).decode()


class BinanceProtocol(StreamProtocol):
    """Combined bookTicker stream; symbols go in the URL."""

    exchange_id = "binance"

    def native_symbol(self, symbol: str) -> str:
        return super().native_symbol(symbol).lower()

    def build_url(self, ws_url: str, symbols: Iterable[str]) -> str:
        streams = "/".join(f"{self.native_symbol(s)}@bookTicker" for s in symbols)
        return f"{ws_url}?streams={streams}"

    def parse(self, data: Any) -> list[BookTick]:
        if not isinstance(data, dict) or "data" not in data:
            return []
        ticker = data["data"]
        return [(ticker["s"], float(ticker["b"]), float(ticker["a"]))]


class BybitProtocol(StreamProtocol):
    """Spot v5 public stream, top-of-book orderbook channel."""

    exchange_id = "bybit"

    def subscribe_messages(self, symbols: Iterable[str]) -> list[str]:
        args = [f"orderbook.1.{self.native_symbol(s)}" for s in symbols]
        return [self._encode({"op": "subscribe", "args": args})]

    def parse(self, data: Any) -> list[BookTick]:
        if not isinstance(data, dict) or not str(data.get("topic", "")).startswith("orderbook"):
            return []
        book = data["data"]
        if not isinstance(book, dict):
            raise TypeError(f"orderbook payload must be an object, got {type(book).__name__}")
        bids, asks = book.get("b") or [], book.get("a") or []
        # Deltas may touch only one side
        if not bids or not asks:
            return []
        return [(book["s"], float(bids[0][0]), float(asks[0][0]))]


class OkxProtocol(StreamProtocol):
    """v5 public tickers channel."""

    exchange_id = "okx"

    def native_symbol(self, symbol: str) -> str:
        base, quote = split_symbol(symbol)
        return f"{base}-{quote}"

    def subscribe_messages(self, symbols: Iterable[str]) -> list[str]:
        args = [{"channel": "tickers", "instId": self.native_symbol(s)} for s in symbols]
        return [self._encode({"op": "subscribe", "args": args})]

    def parse(self, data: Any) -> list[BookTick]:
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            return []
        return [
            (ticker["instId"], float(ticker["bidPx"]), float(ticker["askPx"]))
            for ticker in data["data"]
        ]


class KrakenProtocol(StreamProtocol):
    """v1 public ticker channel; frames are positional arrays."""

    exchange_id = "kraken"

    ASSET_ALIASES: ClassVar[dict[str, str]] = {"BTC": "XBT", "DOGE": "XDG"}

    def native_symbol(self, symbol: str) -> str:
        base, quote = split_symbol(symbol)
        return f"{self.ASSET_ALIASES.get(base, base)}/{quote}"

    def subscribe_messages(self, symbols: Iterable[str]) -> list[str]:
        message = {
            "event": "subscribe",
            "pair": [self.native_symbol(s) for s in symbols],
            "subscription": {"name": "ticker"},
        }
        return [self._encode(message)]

    def parse(self, data: Any) -> list[BookTick]:
        # Status and heartbeat events are dicts
        if not isinstance(data, list) or len(data) < 4:
            return []
        ticker, pair = data[1], data[3]
        return [(pair, float(ticker["b"][0]), float(ticker["a"][0]))]


class CoinbaseProtocol(StreamProtocol):
    """Exchange feed ticker channel."""

    exchange_id = "coinbase"

    def native_symbol(self, symbol: str) -> str:
        base, quote = split_symbol(symbol)
        return f"{base}-{quote}"

    def subscribe_messages(self, symbols: Iterable[str]) -> list[str]:
        message = {
            "type": "subscribe",
            "product_ids": [self.native_symbol(s) for s in symbols],
            "channels": ["ticker"],
        }
        return [self._encode(message)]

    def parse(self, data: Any) -> list[BookTick]:
        if not isinstance(data, dict) or data.get("type") != "ticker":
            return []
        return [(data["product_id"], float(data["best_bid"]), float(data["best_ask"]))]


PROTOCOLS: dict[str, type[StreamProtocol]] = {
    cls.exchange_id: cls
    for cls in (BinanceProtocol, BybitProtocol, OkxProtocol, KrakenProtocol, CoinbaseProtocol)
}


def get_protocol(exchange_id: str) -> StreamProtocol | None:
    """Instantiate the protocol for an exchange, or None if not streamable."""
    cls = PROTOCOLS.get(exchange_id)
    return cls() if cls is not None else None
