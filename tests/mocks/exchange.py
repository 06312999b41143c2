"""
Mock ccxt-style exchange client for testing.

Simulates the async exchange API used by the scanner without network
calls, with configurable books, latency and failures per symbol.
"""

import asyncio
from typing import Any

from crossarb.config.exchanges import ExchangeConfig
from crossarb.exchange.registry import Connector
from crossarb.market.symbols import SymbolMapper


class MockExchangeClient:
    """
    Mock ccxt async exchange.

    Books are keyed by the symbol the client is asked for. A symbol
    mapped to an exception raises it; a symbol without a book raises
    ``missing_error`` (a BadSymbol-style message by default).
    """

    def __init__(
        self,
        exchange_id: str,
        books: dict[str, tuple[float | None, float | None]] | None = None,
        errors: dict[str, BaseException] | None = None,
        latency_s: float = 0.0,
        delays: dict[str, float] | None = None,
        markets: dict[str, Any] | None = None,
        has_order_book: bool = True,
        market_error: BaseException | None = None,
        rate_limit: float = 50.0,
    ) -> None:
        """
        Initialize mock client.

        Args:
            exchange_id: ccxt exchange id.
            books: Symbol -> (best bid, best ask).
            errors: Symbol -> exception raised by fetch_order_book.
            latency_s: Simulated latency per request in seconds.
            delays: Symbol -> latency overriding latency_s.
            markets: Markets returned by load_markets.
            has_order_book: Value of has["fetchOrderBook"].
            market_error: Exception raised by load_markets.
            rate_limit: Reported rateLimit in ms.
        """
        self.id = exchange_id
        self.has: dict[str, Any] = {"fetchOrderBook": has_order_book, "fetchMarkets": True}
        self.rateLimit = rate_limit
        self.markets: dict[str, Any] | None = None

        self._books = books or {}
        self._errors = errors or {}
        self._latency_s = latency_s
        self._delays = delays or {}
        self._markets = markets
        self._market_error = market_error

        self.requests: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def load_markets(self, reload: bool = False) -> dict[str, Any]:
        """Mock market loading."""
        if self._market_error is not None:
            raise self._market_error
        self.markets = self._markets if self._markets is not None else {s: {} for s in self._books}
        return self.markets

    async def fetch_order_book(self, symbol: str, limit: int | None = None) -> dict[str, Any]:
        """Mock order book fetch."""
        self.requests.append(symbol)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)

        try:
            latency = self._delays.get(symbol, self._latency_s)
            if latency:
                await asyncio.sleep(latency)

            if symbol in self._errors:
                raise self._errors[symbol]

            if symbol not in self._books:
                raise Exception(f"{self.id} does not have market symbol {symbol}")

            bid, ask = self._books[symbol]
            return {
                "symbol": symbol,
                "bids": [[bid, 1.0]] if bid is not None else [],
                "asks": [[ask, 1.0]] if ask is not None else [],
                "timestamp": None,
            }
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        """Mock session close."""
        self.closed = True

    def set_book(self, symbol: str, bid: float, ask: float) -> None:
        self._books[symbol] = (bid, ask)
        self._errors.pop(symbol, None)

    def set_error(self, symbol: str, exc: BaseException) -> None:
        self._errors[symbol] = exc


def make_connector(
    client: MockExchangeClient,
    mapping: dict[str, str] | None = None,
    config: ExchangeConfig | None = None,
) -> Connector:
    """Wrap a mock client in a Connector."""
    return Connector(
        exchange_id=client.id,
        client=client,
        config=config or ExchangeConfig(),
        symbols=SymbolMapper(mapping),
    )
