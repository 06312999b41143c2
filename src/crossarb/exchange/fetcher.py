"""
Fan-out order book fetcher.

Queries every connector for every symbol with bounded per-exchange
concurrency, per-request and per-exchange deadlines, and failure
isolation: one exchange, or one pair, failing never affects the rest
of the refresh.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping

from pydantic import ValidationError

from crossarb.config.constants import (
    DEFAULT_EXCHANGE_TIMEOUT_MS,
    DEFAULT_GLOBAL_RATE_LIMIT_MS,
    DEFAULT_MAX_CONCURRENT_REQUESTS,
    DEFAULT_REQUEST_TIMEOUT_MS,
)
from crossarb.core.types import (
    AvailabilityResult,
    ExchangeFetchResult,
    FetchReport,
    FetchStatus,
    Quote,
)
from crossarb.exchange.errors import (
    MalformedResponseError,
    TransportTimeoutError,
    UnsupportedSymbolError,
    classify_error,
)
from crossarb.exchange.models import OrderBookTop
from crossarb.exchange.rate_limiter import BatchRateLimiter, SleepFunc
from crossarb.exchange.registry import Connector
from crossarb.exchange.unavailable import UnavailablePairRegistry
from crossarb.market.price_cache import PriceCache
from crossarb.telemetry.metrics import MetricsCollector
from crossarb.utils.time import get_timestamp_ms, monotonic_ms


logger = logging.getLogger(__name__)


class FetchOrchestrator:
    """
    Bulk quote collection across exchanges.

    Each exchange runs its own pipeline concurrently with the others:
    available symbols are split into batches of ``max_concurrent_requests``,
    batches run strictly in order with a ``global_rate_limit_ms`` pause in
    between, and the whole pipeline is bounded by ``exchange_timeout_ms``.
    Every fetched quote is written to the price cache as it arrives.
    """

    def __init__(
        self,
        cache: PriceCache,
        unavailable: UnavailablePairRegistry,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
        global_rate_limit_ms: int = DEFAULT_GLOBAL_RATE_LIMIT_MS,
        request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS,
        exchange_timeout_ms: int = DEFAULT_EXCHANGE_TIMEOUT_MS,
        metrics: MetricsCollector | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            cache: Shared price cache written with every fetched quote.
            unavailable: Registry of pairs to skip, grown on unsupported symbols.
            max_concurrent_requests: Requests in flight per exchange batch.
            global_rate_limit_ms: Pause between batches on one exchange.
            request_timeout_ms: Deadline for a single order book request.
            exchange_timeout_ms: Deadline for one exchange's batch sequence.
            metrics: Optional metrics collector.
            sleep: Awaitable sleep used for inter-batch pauses.
        """
        self._cache = cache
        self._unavailable = unavailable
        self._max_concurrent = max_concurrent_requests
        self._rate_limit_ms = global_rate_limit_ms
        self._request_timeout = request_timeout_ms / 1000.0
        self._exchange_timeout = exchange_timeout_ms / 1000.0
        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._sleep = sleep

    # =========================================================================
    # Bulk Fetch
    # =========================================================================

    async def fetch_all(
        self,
        connectors: Mapping[str, Connector],
        symbols: Iterable[str],
    ) -> list[Quote]:
        """
        Fetch the latest quotes for every (exchange, symbol) combination.

        Never raises; an empty list means no combination produced data.

        Args:
            connectors: Exchange id -> connector.
            symbols: Canonical symbols to query.

        Returns:
            Flat list of fetched quotes.
        """
        report = await self.collect(connectors, symbols)
        return report.quotes

    async def collect(
        self,
        connectors: Mapping[str, Connector],
        symbols: Iterable[str],
    ) -> FetchReport:
        """
        Fetch quotes and report the outcome per exchange.

        Args:
            connectors: Exchange id -> connector.
            symbols: Canonical symbols to query.

        Returns:
            FetchReport with one ExchangeFetchResult per connector.
        """
        symbol_list = list(symbols)
        report = FetchReport()

        if not connectors or not symbol_list:
            logger.info("No exchanges or symbols to fetch")
            return report

        logger.info(
            f"Fetching order books for {len(symbol_list)} symbols "
            f"from {len(connectors)} exchanges"
        )

        exchange_ids = list(connectors.keys())
        results = await asyncio.gather(
            *[self._run_exchange(connectors[e], symbol_list) for e in exchange_ids],
            return_exceptions=True,
        )

        for exchange_id, result in zip(exchange_ids, results):
            if isinstance(result, BaseException):
                logger.error(f"Pipeline for {exchange_id} failed: {result!r}")
                report.results[exchange_id] = ExchangeFetchResult(
                    exchange=exchange_id,
                    status=FetchStatus.FAILED,
                    error=str(result) or type(result).__name__,
                )
            else:
                report.results[exchange_id] = result

        with_data = sum(1 for r in report.results.values() if r.has_data)
        logger.info(
            f"Fetch complete: {with_data}/{len(report.results)} exchanges returned data, "
            f"{len(report.quotes)} quotes total"
        )
        return report

    async def _run_exchange(self, connector: Connector, symbols: list[str]) -> ExchangeFetchResult:
        """Run one exchange's batch pipeline under the overall deadline."""
        exchange_id = connector.exchange_id
        available = self._unavailable.filter_available(exchange_id, symbols)

        if not available:
            logger.info(f"Exchange {exchange_id} has no available symbols, skipping")
            return ExchangeFetchResult(exchange=exchange_id, status=FetchStatus.SKIPPED)

        collected: list[Quote] = []
        try:
            await asyncio.wait_for(
                self._run_batches(connector, available, collected),
                timeout=self._exchange_timeout,
            )
        except TimeoutError:
            logger.warning(
                f"Exchange {exchange_id} exceeded {self._exchange_timeout:.0f}s, "
                f"keeping {len(collected)} quotes collected so far"
            )
            self._metrics.increment_counter("exchange_timeouts")
            return ExchangeFetchResult(
                exchange=exchange_id,
                status=FetchStatus.TIMED_OUT,
                quotes=list(collected),
                requested=len(available),
                error="exchange timeout",
            )

        if len(collected) == len(available):
            status = FetchStatus.OK
        elif collected:
            status = FetchStatus.PARTIAL
        else:
            status = FetchStatus.EMPTY

        return ExchangeFetchResult(
            exchange=exchange_id,
            status=status,
            quotes=collected,
            requested=len(available),
        )

    async def _run_batches(
        self,
        connector: Connector,
        symbols: list[str],
        collected: list[Quote],
    ) -> None:
        """Issue batches in order, pausing between them."""
        limiter = BatchRateLimiter(
            batch_size=self._max_concurrent,
            interval_ms=self._rate_limit_ms,
            sleep=self._sleep,
        )
        batches = limiter.batches(symbols)

        for index, batch in enumerate(batches, start=1):
            before = len(collected)
            await asyncio.gather(*[self._fetch_into(connector, s, collected) for s in batch])

            logger.debug(
                f"{connector.exchange_id} batch {index}/{len(batches)}: "
                f"{len(collected) - before}/{len(batch)} succeeded"
            )

            if index < len(batches):
                await limiter.pause()

    async def _fetch_into(self, connector: Connector, symbol: str, collected: list[Quote]) -> None:
        quote = await self.fetch_quote(connector, symbol)
        if quote is not None:
            collected.append(quote)

    # =========================================================================
    # Single Fetch
    # =========================================================================

    async def fetch_quote(self, connector: Connector, symbol: str) -> Quote | None:
        """
        Fetch the best bid/ask for one pair and cache it.

        Every failure degrades to None: timeouts, network errors and
        malformed books are logged, unsupported symbols are recorded in
        the unavailable-pair registry.

        Args:
            connector: Exchange connector.
            symbol: Canonical symbol.

        Returns:
            The fetched quote, or None if no data was obtained.
        """
        exchange_id = connector.exchange_id

        if not connector.can_fetch_order_book:
            logger.debug(f"Exchange {exchange_id} does not support order book fetches")
            return None

        if self._unavailable.contains(exchange_id, symbol):
            logger.debug(f"Skipping unavailable pair {exchange_id} {symbol}")
            return None

        native = connector.to_native(symbol)
        start = monotonic_ms()

        try:
            raw = await asyncio.wait_for(
                connector.client.fetch_order_book(native, limit=connector.order_book_depth),
                timeout=self._request_timeout,
            )
            book = OrderBookTop.model_validate(raw)
        except TimeoutError:
            logger.warning(f"Order book request for {exchange_id} {symbol} timed out")
            self._metrics.record_fetch(exchange_id, "timeout")
            return None
        except ValidationError as e:
            logger.warning(f"Incomplete order book from {exchange_id} for {native}: {e.error_count()} errors")
            self._metrics.record_fetch(exchange_id, "malformed")
            return None
        except Exception as e:
            self._handle_fetch_error(exchange_id, symbol, e)
            return None

        quote = Quote(
            exchange=exchange_id,
            symbol=symbol,
            bid=book.best_bid,
            ask=book.best_ask,
            timestamp=get_timestamp_ms(),
        )
        self._cache.upsert(quote)
        self._metrics.record_fetch(exchange_id, "success", monotonic_ms() - start)

        logger.debug(f"{exchange_id} {symbol}: bid={quote.bid} ask={quote.ask}")
        return quote

    def _handle_fetch_error(self, exchange_id: str, symbol: str, exc: Exception) -> None:
        """Classify a fetch failure and apply its side effects."""
        error = classify_error(exc, exchange_id, symbol)

        if isinstance(error, UnsupportedSymbolError):
            logger.warning(f"{exchange_id} does not support {symbol}: {error}")
            self._unavailable.add(exchange_id, symbol)
            self._metrics.record_fetch(exchange_id, "unsupported")
        elif isinstance(error, TransportTimeoutError):
            logger.warning(f"Request to {exchange_id} for {symbol} timed out: {error}")
            self._metrics.record_fetch(exchange_id, "timeout")
        elif isinstance(error, MalformedResponseError):
            logger.warning(f"Bad response from {exchange_id} for {symbol}: {error}")
            self._metrics.record_fetch(exchange_id, "malformed")
        else:
            logger.error(f"Error fetching {symbol} from {exchange_id} ({type(error).__name__}): {error}")
            self._metrics.record_fetch(exchange_id, "error")

    # =========================================================================
    # Availability Check
    # =========================================================================

    async def check_availability(self, connector: Connector, symbol: str) -> AvailabilityResult:
        """
        Check whether one pair can be fetched right now.

        Market loading failures are tolerated and the order book fetch is
        attempted anyway. The price cache is left untouched.

        Args:
            connector: Exchange connector.
            symbol: Canonical symbol.

        Returns:
            AvailabilityResult; never raises.
        """
        exchange_id = connector.exchange_id
        native = connector.to_native(symbol)

        def failure(message: str) -> AvailabilityResult:
            return AvailabilityResult(
                exchange=exchange_id,
                symbol=symbol,
                success=False,
                timestamp=get_timestamp_ms(),
                error=message,
            )

        markets = None
        if connector.can_load_markets:
            try:
                markets = await asyncio.wait_for(
                    connector.client.load_markets(),
                    timeout=self._request_timeout,
                )
            except Exception as e:
                logger.info(f"Loading markets for {exchange_id} failed, trying order book anyway: {e}")

        if markets and native not in markets:
            return failure(f"{native} is not listed on {exchange_id}")

        try:
            raw = await asyncio.wait_for(
                connector.client.fetch_order_book(native, limit=connector.order_book_depth),
                timeout=self._request_timeout,
            )
            book = OrderBookTop.model_validate(raw)
        except ValidationError:
            return failure(str(MalformedResponseError(f"Incomplete order book for {native} on {exchange_id}")))
        except Exception as e:
            error = classify_error(e, exchange_id, symbol)
            if isinstance(error, UnsupportedSymbolError):
                self._unavailable.add(exchange_id, symbol)
            logger.warning(f"Availability check {exchange_id} {symbol} failed: {error!r}")
            return failure(str(error) or type(error).__name__)

        return AvailabilityResult(
            exchange=exchange_id,
            symbol=symbol,
            success=True,
            bid=book.best_bid,
            ask=book.best_ask,
            timestamp=get_timestamp_ms(),
        )

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics
