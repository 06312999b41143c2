"""
Error taxonomy for exchange data collection.

Raw exceptions from the connector library, asyncio and aiohttp are
mapped onto a small hierarchy so callers can decide how to degrade:
missing data, a learned unavailable pair, or a stream reconnect.
"""

import asyncio

import aiohttp
import ccxt


# Message fragments that identify a pair the venue does not list
UNSUPPORTED_SYMBOL_MARKERS = ("BadSymbol", "does not have market symbol")


class FeedError(Exception):
    """Base exception for quote collection errors."""

    def __init__(self, message: str, exchange: str = "", symbol: str = "") -> None:
        super().__init__(message)
        self.exchange = exchange
        self.symbol = symbol


class TransportTimeoutError(FeedError):
    """Request exceeded its deadline."""

    pass


class ExchangeNetworkError(FeedError):
    """Connectivity failure talking to the exchange."""

    pass


class UnsupportedSymbolError(FeedError):
    """The exchange does not list the requested pair."""

    pass


class MalformedResponseError(FeedError):
    """Order book missing or with an empty side."""

    pass


class StreamDisconnectError(FeedError):
    """WebSocket transport closed or failed."""

    pass


class ExchangeRequestError(FeedError):
    """Any other error reported by the exchange."""

    pass


def is_unsupported_symbol_message(message: str) -> bool:
    """Check whether an error message reports an unlisted pair."""
    return any(marker in message for marker in UNSUPPORTED_SYMBOL_MARKERS)


def classify_error(exc: BaseException, exchange: str = "", symbol: str = "") -> FeedError:
    """
    Map a raw exception onto the feed error taxonomy.

    Args:
        exc: Exception raised while fetching.
        exchange: Exchange id for context.
        symbol: Canonical symbol for context.

    Returns:
        A FeedError subclass instance (``exc`` itself if already classified).
    """
    if isinstance(exc, FeedError):
        return exc

    message = str(exc) or type(exc).__name__

    if isinstance(exc, ccxt.BadSymbol) or is_unsupported_symbol_message(message):
        return UnsupportedSymbolError(message, exchange, symbol)
    # RequestTimeout subclasses NetworkError
    if isinstance(exc, (asyncio.TimeoutError, ccxt.RequestTimeout)):
        return TransportTimeoutError(message, exchange, symbol)
    if isinstance(exc, (ccxt.NetworkError, aiohttp.ClientError, ConnectionError)):
        return ExchangeNetworkError(message, exchange, symbol)
    if isinstance(exc, (ccxt.BadResponse, ValueError, KeyError, IndexError, TypeError)):
        return MalformedResponseError(message, exchange, symbol)

    return ExchangeRequestError(message, exchange, symbol)
