"""
Main arbitrage scanner orchestrator.

Coordinates all system components and manages the
scanning lifecycle.
"""

import asyncio
import logging
import signal
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from crossarb.config.constants import TOP_OPPORTUNITIES_LOGGED
from crossarb.config.exchanges import UNAVAILABLE_PAIRS
from crossarb.config.settings import Settings
from crossarb.core.event_bus import EventBus, EventType
from crossarb.core.types import (
    ArbitrageOpportunity,
    AvailabilityResult,
    FetchReport,
    RefreshSnapshot,
    SnapshotStatus,
)
from crossarb.exchange.fetcher import FetchOrchestrator
from crossarb.exchange.rate_limiter import SleepFunc
from crossarb.exchange.registry import ConnectorRegistry
from crossarb.exchange.unavailable import UnavailablePairRegistry
from crossarb.market.price_cache import PriceCache
from crossarb.market.websocket import ConnectFunc, ReconnectPolicy, StreamingFeedManager
from crossarb.strategy.calculator import ArbitrageCalculator
from crossarb.strategy.opportunity import ArbitrageDetector, OpportunityBook
from crossarb.telemetry.metrics import MetricsCollector
from crossarb.utils.math import format_profit
from crossarb.utils.time import format_timestamp_ms, get_timestamp_ms, monotonic_ms


logger = logging.getLogger(__name__)


class ArbitrageEngine:
    """
    Main scanner orchestrator.

    Manages the complete lifecycle of:
    - Exchange connectivity
    - Bulk quote refresh and streaming feeds
    - Opportunity detection
    - Telemetry
    """

    def __init__(
        self,
        settings: Settings,
        registry: ConnectorRegistry | None = None,
        metrics: MetricsCollector | None = None,
        feed_connect: ConnectFunc | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the engine.

        Args:
            settings: Application settings.
            registry: Connector registry; built from settings when omitted.
            metrics: Metrics collector shared by all components.
            feed_connect: WebSocket opener for the streaming feeds.
            sleep: Awaitable sleep used for batch pauses and reconnect delays.
        """
        self._settings = settings
        self._running = False
        self._closed = False
        self._shutdown_event = asyncio.Event()

        # Owned stores
        self._cache = PriceCache()
        self._unavailable = UnavailablePairRegistry(UNAVAILABLE_PAIRS)
        self._book = OpportunityBook()

        # Infrastructure
        self._event_bus = EventBus()
        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._sleep = sleep
        self._feed_connect = feed_connect

        # Components
        self._registry = registry if registry is not None else ConnectorRegistry(
            exchange_ids=settings.exchanges,
            proxy_url=settings.proxy_url,
        )
        self._fetcher = FetchOrchestrator(
            cache=self._cache,
            unavailable=self._unavailable,
            max_concurrent_requests=settings.max_concurrent_requests,
            global_rate_limit_ms=settings.global_rate_limit_ms,
            request_timeout_ms=settings.request_timeout_ms,
            exchange_timeout_ms=settings.exchange_timeout_ms,
            metrics=self._metrics,
            sleep=sleep,
        )
        self._detector = ArbitrageDetector(
            calculator=ArbitrageCalculator(
                fee_rate=settings.fee_rate,
                slippage_factor=settings.slippage_factor,
            ),
            freshness_window_ms=settings.freshness_window_ms,
            min_estimated_profit=settings.min_estimated_profit,
            book=self._book,
        )
        self._feed: StreamingFeedManager | None = None
        self._last_report: FetchReport | None = None

    async def setup(self) -> None:
        """Initialize all components."""
        logger.info("Initializing arbitrage scanner...")

        self._registry.initialize()
        if not len(self._registry):
            logger.warning("No exchange connectors could be initialized")

        if self._settings.enable_streaming:
            self._feed = StreamingFeedManager(
                exchange_ids=self._settings.stream_exchanges,
                symbols=self._settings.symbols,
                cache=self._cache,
                bus=self._event_bus,
                policy=ReconnectPolicy(
                    max_retries=self._settings.max_retries,
                    initial_delay_ms=self._settings.initial_delay_ms,
                    max_delay_ms=self._settings.max_delay_ms,
                    factor=self._settings.reconnect_factor,
                ),
                metrics=self._metrics,
                connect=self._feed_connect,
                sleep=self._sleep,
            )

        logger.info(
            f"Scanner ready: {len(self._registry)} exchanges, "
            f"{len(self._settings.symbols)} symbols, "
            f"streaming {'on' if self._feed else 'off'}"
        )

    # =========================================================================
    # Queries
    # =========================================================================

    async def refresh_snapshot(self) -> RefreshSnapshot:
        """
        Fetch fresh quotes from every exchange and re-run detection.

        Never raises. When no exchange returns data the snapshot status is
        NO_DATA and carries the last good opportunity list with the
        current cache contents.

        Returns:
            RefreshSnapshot for the presentation layer.
        """
        start = monotonic_ms()

        report = await self._fetcher.collect(self._registry.connectors, self._settings.symbols)
        self._last_report = report
        now = get_timestamp_ms()

        if not report.quotes:
            logger.warning("Refresh returned no data, serving last known opportunities")
            snapshot = RefreshSnapshot(
                status=SnapshotStatus.NO_DATA,
                quotes=self._cache.snapshot(),
                opportunities=self._book.latest(),
                partial=True,
                updated_at=self._book.last_updated or now,
                error="no exchange returned data",
            )
        else:
            opportunities = self._detector.detect(self._cache, now)
            status = SnapshotStatus.PARTIAL if report.is_partial else SnapshotStatus.FRESH
            if report.is_partial:
                logger.info(f"Partial refresh, no data from: {', '.join(report.failed_exchanges)}")
            snapshot = RefreshSnapshot(
                status=status,
                quotes=self._cache.snapshot(),
                opportunities=opportunities,
                partial=report.is_partial,
                updated_at=now,
            )
            self._event_bus.emit(EventType.OPPORTUNITIES_UPDATED, opportunities, source="refresh")

        best = snapshot.opportunities[0].percentage_difference if snapshot.opportunities else 0.0
        self._metrics.record_cycle(
            snapshot.status.value,
            opportunities=len(snapshot.opportunities) if snapshot.status is not SnapshotStatus.NO_DATA else 0,
            best_percentage=best,
        )
        self._metrics.record_latency("refresh_cycle", monotonic_ms() - start)

        return snapshot

    async def test_availability(self, exchange_id: str, symbol: str) -> AvailabilityResult:
        """
        Check whether one pair can be fetched on one exchange.

        Args:
            exchange_id: Exchange id.
            symbol: Canonical symbol.

        Returns:
            AvailabilityResult; never raises.
        """
        connector = self._registry.get(exchange_id)
        if connector is None:
            return AvailabilityResult(
                exchange=exchange_id,
                symbol=symbol,
                success=False,
                timestamp=get_timestamp_ms(),
                error=f"Exchange {exchange_id} is not initialized",
            )
        return await self._fetcher.check_availability(connector, symbol)

    @property
    def opportunities(self) -> list[ArbitrageOpportunity]:
        """Latest ranked opportunity list."""
        return self._book.latest()

    def rate_limits(self) -> dict[str, dict[str, Any]]:
        """Diagnostic rate-limit info per exchange."""
        return self._registry.rate_limits()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self, max_cycles: int | None = None) -> None:
        """
        Run streaming feeds plus a periodic refresh until shutdown.

        Args:
            max_cycles: Stop after this many refresh cycles (unbounded if None).
        """
        self._running = True

        # Set up signal handlers
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._handle_shutdown)

        try:
            logger.info("Starting arbitrage scanner...")

            if self._feed:
                await self._feed.start()

            cycles = 0
            while not self._shutdown_event.is_set():
                snapshot = await self.refresh_snapshot()
                self._log_snapshot(snapshot)

                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    break

                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self._settings.refresh_interval_s,
                    )
                except TimeoutError:
                    pass

        except Exception as e:
            logger.error(f"Engine error: {e}")
            raise

        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            await self.shutdown()

    def _log_snapshot(self, snapshot: RefreshSnapshot) -> None:
        logger.info(
            f"Refresh {snapshot.status.value} at {format_timestamp_ms(snapshot.updated_at)}: "
            f"{snapshot.quote_count} quotes, "
            f"{len(snapshot.opportunities)} opportunities"
        )
        for opportunity in snapshot.opportunities[:TOP_OPPORTUNITIES_LOGGED]:
            logger.info(
                f"  {opportunity.symbol:<10} buy {opportunity.buy_exchange:<9} @ {opportunity.buy_price:.6g} "
                f"sell {opportunity.sell_exchange:<9} @ {opportunity.sell_price:.6g} "
                f"{format_profit(opportunity.percentage_difference)} "
                f"est={opportunity.estimated_profit:.6f} net={opportunity.net_profit:.6f}"
            )

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal."""
        logger.info("Shutdown signal received")
        self._running = False
        self._shutdown_event.set()

    def request_shutdown(self) -> None:
        """Ask a running loop to stop after the current cycle."""
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Gracefully shut down the engine."""
        if self._closed:
            return
        self._closed = True

        logger.info("Shutting down scanner...")
        self._running = False

        # Stop streaming feeds
        if self._feed:
            await self._feed.stop()

        # Close exchange clients
        await self._registry.close()

        self._event_bus.close()

        logger.info(f"Scanner shutdown complete: {self._metrics.summary()}")

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def is_running(self) -> bool:
        """Check if engine is running."""
        return self._running

    @property
    def metrics(self) -> MetricsCollector:
        """Get metrics collector."""
        return self._metrics

    @property
    def cache(self) -> PriceCache:
        return self._cache

    @property
    def unavailable(self) -> UnavailablePairRegistry:
        return self._unavailable

    @property
    def feed(self) -> StreamingFeedManager | None:
        """Streaming feed manager, None when streaming is disabled."""
        return self._feed

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def last_report(self) -> FetchReport | None:
        return self._last_report


@asynccontextmanager
async def create_engine(
    settings: Settings,
    factory: Callable[[Settings], ArbitrageEngine] = ArbitrageEngine,
) -> AsyncIterator[ArbitrageEngine]:
    """
    Create and manage engine lifecycle.

    Usage:
        async with create_engine(settings) as engine:
            await engine.run()
    """
    engine = factory(settings)

    try:
        await engine.setup()
        yield engine
    finally:
        await engine.shutdown()
