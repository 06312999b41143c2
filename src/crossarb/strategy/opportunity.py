"""
Opportunity detection and management.

Scans the price cache for cross-exchange spreads and publishes the
ranked result to a shared opportunity book.
"""

import logging
from dataclasses import dataclass
from itertools import combinations

from crossarb.config.constants import DEFAULT_FRESHNESS_WINDOW_MS, DEFAULT_MIN_ESTIMATED_PROFIT
from crossarb.core.types import ArbitrageOpportunity, Quote
from crossarb.market.price_cache import PriceCache
from crossarb.strategy.calculator import ArbitrageCalculator
from crossarb.utils.math import is_valid_price
from crossarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


def sort_key(opportunity: ArbitrageOpportunity) -> tuple[float, str, str, str]:
    """Descending percentage, then symbol and venue names for stable ties."""
    return (
        -opportunity.percentage_difference,
        opportunity.symbol,
        opportunity.buy_exchange,
        opportunity.sell_exchange,
    )


class OpportunityBook:
    """
    Latest ranked opportunity list.

    ``replace`` swaps the whole list in one assignment, so readers see
    either the previous list or the new one, never a mix.
    """

    __slots__ = ("_opportunities", "_updated_at", "_generation")

    def __init__(self) -> None:
        self._opportunities: tuple[ArbitrageOpportunity, ...] = ()
        self._updated_at = 0
        self._generation = 0

    def replace(self, opportunities: list[ArbitrageOpportunity], updated_at: int | None = None) -> None:
        self._opportunities = tuple(opportunities)
        self._updated_at = updated_at if updated_at is not None else get_timestamp_ms()
        self._generation += 1

    def latest(self) -> list[ArbitrageOpportunity]:
        return list(self._opportunities)

    def best(self) -> ArbitrageOpportunity | None:
        return self._opportunities[0] if self._opportunities else None

    @property
    def last_updated(self) -> int:
        """Timestamp of the last replace, 0 if never populated."""
        return self._updated_at

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._opportunities)


@dataclass
class DetectionStats:
    """Statistics for opportunity detection."""

    total_scans: int = 0
    pairs_evaluated: int = 0
    stale_skipped: int = 0
    last_found: int = 0
    best_percentage: float = 0.0


class ArbitrageDetector:
    """
    Finds cross-exchange opportunities in the price cache.

    For every symbol quoted on two or more exchanges, each unordered
    exchange pair is evaluated in both directions. Quotes older than the
    freshness window, or with a zero bid or ask, are ignored. Detection
    only reads the cache; the same cache contents always produce the
    same list.
    """

    def __init__(
        self,
        calculator: ArbitrageCalculator | None = None,
        freshness_window_ms: int = DEFAULT_FRESHNESS_WINDOW_MS,
        min_estimated_profit: float = DEFAULT_MIN_ESTIMATED_PROFIT,
        book: OpportunityBook | None = None,
    ) -> None:
        """
        Initialize the detector.

        Args:
            calculator: Profit calculator.
            freshness_window_ms: Maximum quote age considered.
            min_estimated_profit: Opportunities must exceed this estimated profit.
            book: Book receiving each detection result.
        """
        self._calculator = calculator if calculator is not None else ArbitrageCalculator()
        self._freshness_window_ms = freshness_window_ms
        self._min_estimated_profit = min_estimated_profit
        self._book = book if book is not None else OpportunityBook()
        self._stats = DetectionStats()

    def detect(self, cache: PriceCache, now_ms: int | None = None) -> list[ArbitrageOpportunity]:
        """
        Scan the cache and publish the ranked opportunities.

        Args:
            cache: Price cache to read.
            now_ms: Reference time for freshness; defaults to now.

        Returns:
            Opportunities sorted by descending percentage difference.
        """
        now = now_ms if now_ms is not None else get_timestamp_ms()
        self._stats.total_scans += 1

        opportunities: list[ArbitrageOpportunity] = []
        for symbol, quotes in cache.snapshot().items():
            if len(quotes) < 2:
                continue
            opportunities.extend(self._detect_symbol(symbol, quotes, now))

        opportunities.sort(key=sort_key)
        self._book.replace(opportunities, now)

        self._stats.last_found = len(opportunities)
        if opportunities:
            self._stats.best_percentage = opportunities[0].percentage_difference
            logger.debug(
                f"Found {len(opportunities)} opportunities, best "
                f"{opportunities[0].symbol} {opportunities[0].percentage_difference:.4f}%"
            )

        return opportunities

    def _detect_symbol(
        self,
        symbol: str,
        quotes: dict[str, Quote],
        now: int,
    ) -> list[ArbitrageOpportunity]:
        found: list[ArbitrageOpportunity] = []

        for first, second in combinations(sorted(quotes), 2):
            x, y = quotes[first], quotes[second]

            if not (self._is_usable(x, now) and self._is_usable(y, now)):
                continue

            self._stats.pairs_evaluated += 1
            timestamp = max(x.timestamp, y.timestamp)

            for buy, sell in ((x, y), (y, x)):
                opportunity = self._calculator.compute(symbol, buy, sell, timestamp)
                if opportunity.estimated_profit > self._min_estimated_profit:
                    found.append(opportunity)

        return found

    def _is_usable(self, quote: Quote, now: int) -> bool:
        if not (is_valid_price(quote.bid) and is_valid_price(quote.ask)):
            return False
        if quote.age_ms(now) > self._freshness_window_ms:
            self._stats.stale_skipped += 1
            return False
        return True

    @property
    def book(self) -> OpportunityBook:
        return self._book

    @property
    def stats(self) -> DetectionStats:
        """Get detection statistics."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset detection statistics."""
        self._stats = DetectionStats()
