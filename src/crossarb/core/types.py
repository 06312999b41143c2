"""
Type definitions for the arbitrage scanner.

This module contains the dataclasses, enums and Protocol definitions
shared across the fetch, streaming and detection components. Market
data types are frozen so they can be shared between tasks safely.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


# =============================================================================
# Enums
# =============================================================================


class OpportunityStatus(str, Enum):
    """Lifecycle status of an arbitrage opportunity."""

    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class FeedState(str, Enum):
    """Streaming connection state for one exchange."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class FetchStatus(str, Enum):
    """Outcome of one exchange's bulk fetch."""

    OK = "ok"
    PARTIAL = "partial"
    EMPTY = "empty"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class SnapshotStatus(str, Enum):
    """Outcome of a refresh cycle as seen by the presentation layer."""

    FRESH = "fresh"
    PARTIAL = "partial"
    NO_DATA = "no_data"


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class Quote:
    """
    Best bid and ask for one symbol on one exchange.

    Timestamps are Unix epoch milliseconds.
    """

    exchange: str
    symbol: str
    bid: float
    ask: float
    timestamp: int

    @property
    def spread(self) -> float:
        """Calculate bid-ask spread."""
        return self.ask - self.bid

    def age_ms(self, now_ms: int) -> int:
        """Milliseconds elapsed since the quote was taken."""
        return now_ms - self.timestamp

    def to_dict(self) -> dict[str, Any]:
        return {
            "exchange": self.exchange,
            "symbol": self.symbol,
            "bid": self.bid,
            "ask": self.ask,
            "timestamp": self.timestamp,
        }


@dataclass(slots=True, frozen=True)
class QuoteUpdate:
    """Cache write published by the streaming feed."""

    quote: Quote
    source: str = "stream"


# =============================================================================
# Opportunity Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class ArbitrageOpportunity:
    """
    Cross-exchange opportunity: buy on one venue, sell on another.

    Prices are per unit of the base asset, profits in quote currency.
    """

    symbol: str
    buy_exchange: str
    sell_exchange: str
    buy_price: float
    sell_price: float
    absolute_difference: float
    percentage_difference: float
    estimated_profit: float
    net_profit: float
    timestamp: int
    status: OpportunityStatus = OpportunityStatus.ACTIVE

    @property
    def key(self) -> str:
        """Identity used by callers to deduplicate across detection passes."""
        return f"{self.buy_exchange}-{self.sell_exchange}-{self.symbol}-{self.timestamp}"

    @property
    def is_profitable(self) -> bool:
        """Check if opportunity is profitable after fees."""
        return self.estimated_profit > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.key,
            "symbol": self.symbol,
            "buyExchange": self.buy_exchange,
            "sellExchange": self.sell_exchange,
            "buyPrice": self.buy_price,
            "sellPrice": self.sell_price,
            "absoluteDifference": self.absolute_difference,
            "percentageDifference": self.percentage_difference,
            "estimatedProfit": self.estimated_profit,
            "netProfit": self.net_profit,
            "timestamp": self.timestamp,
            "status": self.status.value,
        }


# =============================================================================
# Streaming Types
# =============================================================================


@dataclass(slots=True)
class ReconnectState:
    """Retry bookkeeping for one streaming connection."""

    retry_count: int = 0
    next_delay_ms: float = 0.0

    def reset(self) -> None:
        """Forget previous failures after a successful connection."""
        self.retry_count = 0
        self.next_delay_ms = 0.0


# =============================================================================
# Result Types
# =============================================================================


@dataclass(slots=True)
class ExchangeFetchResult:
    """Quotes gathered from one exchange in a bulk fetch."""

    exchange: str
    status: FetchStatus
    quotes: list[Quote] = field(default_factory=list)
    requested: int = 0
    error: str = ""

    @property
    def has_data(self) -> bool:
        return bool(self.quotes)


@dataclass(slots=True)
class FetchReport:
    """Aggregate result of a bulk fetch across exchanges."""

    results: dict[str, ExchangeFetchResult] = field(default_factory=dict)

    @property
    def quotes(self) -> list[Quote]:
        """All quotes, grouped by exchange in completion order."""
        return [q for result in self.results.values() for q in result.quotes]

    @property
    def failed_exchanges(self) -> list[str]:
        """Exchanges that were queried but produced no data."""
        return [
            exchange
            for exchange, result in self.results.items()
            if result.status is not FetchStatus.SKIPPED and not result.has_data
        ]

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_exchanges)


@dataclass(slots=True)
class RefreshSnapshot:
    """Everything the presentation layer needs after a refresh cycle."""

    status: SnapshotStatus
    quotes: dict[str, dict[str, Quote]]
    opportunities: list[ArbitrageOpportunity]
    partial: bool
    updated_at: int
    error: str = ""

    @property
    def success(self) -> bool:
        return self.status is not SnapshotStatus.NO_DATA

    @property
    def quote_count(self) -> int:
        """Number of (symbol, exchange) quotes in the snapshot."""
        return sum(len(exchanges) for exchanges in self.quotes.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status.value,
            "partial": self.partial,
            "updatedAt": self.updated_at,
            "prices": {
                symbol: {ex: q.to_dict() for ex, q in exchanges.items()}
                for symbol, exchanges in self.quotes.items()
            },
            "opportunities": [o.to_dict() for o in self.opportunities],
            "quoteCount": self.quote_count,
            "error": self.error,
        }


@dataclass(slots=True)
class AvailabilityResult:
    """Result of an ad hoc connectivity check for one pair."""

    exchange: str
    symbol: str
    success: bool
    bid: float | None = None
    ask: float | None = None
    timestamp: int = 0
    error: str = ""

    @property
    def spread(self) -> float | None:
        if self.bid is None or self.ask is None:
            return None
        return self.ask - self.bid


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


class ExchangeClient(Protocol):
    """Subset of the ccxt async exchange API used by the scanner."""

    id: str
    has: dict[str, Any]
    rateLimit: float
    markets: dict[str, Any] | None

    async def load_markets(self, reload: bool = False) -> dict[str, Any]:
        """Load market metadata keyed by symbol."""
        ...

    async def fetch_order_book(
        self,
        symbol: str,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Fetch bids and asks, best price first."""
        ...

    async def close(self) -> None:
        """Release the underlying HTTP session."""
        ...
