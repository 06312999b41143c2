"""
Shared latest-quote cache.

Maintains the most recent best bid/ask per (symbol, exchange), written
by both the bulk fetch orchestrator and the streaming feeds and read by
the arbitrage detector.
"""

from typing import Any

from crossarb.core.types import Quote


class PriceCache:
    """
    Mapping of symbol -> exchange -> latest Quote.

    All writers run on the event loop and no method awaits, so every
    upsert is atomic with respect to other tasks and ``snapshot()`` is a
    consistent view of the whole cache. Last write wins per key.
    """

    __slots__ = ("_quotes", "_update_count")

    def __init__(self) -> None:
        """Initialize empty cache."""
        self._quotes: dict[str, dict[str, Quote]] = {}
        self._update_count: int = 0

    def upsert(self, quote: Quote) -> None:
        """
        Store a quote, replacing any previous one for the same pair.

        Args:
            quote: Quote to store.
        """
        exchanges = self._quotes.get(quote.symbol)
        if exchanges is None:
            exchanges = self._quotes[quote.symbol] = {}
        exchanges[quote.exchange] = quote
        self._update_count += 1

    def get(self, symbol: str, exchange: str) -> Quote | None:
        """
        Get the latest quote for a pair.

        Args:
            symbol: Canonical symbol.
            exchange: Exchange id.

        Returns:
            Quote or None if not cached.
        """
        exchanges = self._quotes.get(symbol)
        if exchanges is None:
            return None
        return exchanges.get(exchange)

    def get_symbol(self, symbol: str) -> dict[str, Quote]:
        """Get a copy of all exchange quotes for one symbol."""
        return dict(self._quotes.get(symbol, {}))

    def snapshot(self) -> dict[str, dict[str, Quote]]:
        """
        Get a point-in-time copy of the whole cache.

        Quotes are immutable, so only the dict structure is copied.
        """
        return {symbol: dict(exchanges) for symbol, exchanges in self._quotes.items()}

    def symbols(self) -> frozenset[str]:
        """Get all cached symbols."""
        return frozenset(self._quotes.keys())

    def exchanges_for(self, symbol: str) -> frozenset[str]:
        """Get the exchanges with a quote for a symbol."""
        return frozenset(self._quotes.get(symbol, {}).keys())

    def exchange_count(self) -> int:
        """Number of distinct exchanges with at least one quote."""
        return len({exchange for exchanges in self._quotes.values() for exchange in exchanges})

    def clear(self) -> None:
        """Clear all cached data."""
        self._quotes.clear()

    @property
    def size(self) -> int:
        """Number of cached (symbol, exchange) quotes."""
        return sum(len(exchanges) for exchanges in self._quotes.values())

    @property
    def update_count(self) -> int:
        """Get total number of writes received."""
        return self._update_count

    def __contains__(self, key: tuple[str, str]) -> bool:
        symbol, exchange = key
        return self.get(symbol, exchange) is not None

    def __len__(self) -> int:
        return self.size

    def to_dict(self) -> dict[str, dict[str, dict[str, Any]]]:
        """
        Convert cache to serializable dict.

        Returns:
            Dict representation of all quotes.
        """
        return {
            symbol: {exchange: quote.to_dict() for exchange, quote in exchanges.items()}
            for symbol, exchanges in self._quotes.items()
        }
