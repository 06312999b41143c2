"""
WebSocket manager for real-time best bid/ask feeds.

Runs one connection per exchange with:
- Explicit connection state machine
- Exponential reconnect backoff with a retry ceiling
- Cache writes and event publication for every book tick
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any

import aiohttp
import orjson

from crossarb.config.constants import (
    DEFAULT_INITIAL_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RECONNECT_FACTOR,
    WS_CLOSE_TIMEOUT,
    WS_HEARTBEAT,
    WS_MAX_MESSAGE_SIZE,
)
from crossarb.config.exchanges import EXCHANGE_CONFIGS, ExchangeConfig
from crossarb.core.event_bus import EventBus, EventType, Subscription
from crossarb.core.types import FeedState, Quote, QuoteUpdate, ReconnectState
from crossarb.exchange.errors import StreamDisconnectError
from crossarb.exchange.rate_limiter import SleepFunc
from crossarb.market.price_cache import PriceCache
from crossarb.market.protocols import StreamProtocol, get_protocol
from crossarb.telemetry.metrics import MetricsCollector
from crossarb.utils.math import is_valid_price
from crossarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


# Opens a WebSocket for a URL; aiohttp's ``session.ws_connect`` fits.
ConnectFunc = Callable[[str], AbstractAsyncContextManager[Any]]

_CLOSING_TYPES = (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.CLOSING)


def compute_backoff_delay(
    retry_count: int,
    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS,
    factor: float = DEFAULT_RECONNECT_FACTOR,
    max_delay_ms: float = DEFAULT_MAX_DELAY_MS,
) -> float:
    """
    Reconnect delay for the given number of previous attempts.

    Example:
        >>> [compute_backoff_delay(n) for n in range(4)]
        [1000.0, 1500.0, 2250.0, 3375.0]
    """
    return min(initial_delay_ms * factor**retry_count, max_delay_ms)


@dataclass(slots=True, frozen=True)
class ReconnectPolicy:
    """Backoff parameters shared by all streams."""

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay_ms: float = DEFAULT_INITIAL_DELAY_MS
    max_delay_ms: float = DEFAULT_MAX_DELAY_MS
    factor: float = DEFAULT_RECONNECT_FACTOR

    def delay_for(self, retry_count: int) -> float:
        return compute_backoff_delay(retry_count, self.initial_delay_ms, self.factor, self.max_delay_ms)


class ExchangeStream:
    """
    Single exchange WebSocket connection.

    Handles connection lifecycle, reconnection, and routing of book
    ticks into the price cache and event bus.
    """

    def __init__(
        self,
        exchange_id: str,
        protocol: StreamProtocol,
        ws_url: str,
        symbols: Iterable[str],
        cache: PriceCache,
        bus: EventBus,
        connect: ConnectFunc,
        policy: ReconnectPolicy | None = None,
        metrics: MetricsCollector | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the stream.

        Args:
            exchange_id: Exchange id used for cache entries.
            protocol: Venue protocol.
            ws_url: Base WebSocket URL.
            symbols: Canonical symbols to subscribe.
            cache: Shared price cache.
            bus: Event bus receiving QuoteUpdate and state events.
            connect: Opens a WebSocket for a URL.
            policy: Reconnect policy.
            metrics: Optional metrics collector.
            sleep: Awaitable sleep used for reconnect delays.
        """
        self._exchange_id = exchange_id
        self._protocol = protocol
        self._ws_url = ws_url
        self._symbols = list(symbols)
        self._cache = cache
        self._bus = bus
        self._connect = connect
        self._policy = policy if policy is not None else ReconnectPolicy()
        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._sleep = sleep

        # Native (upper-cased) -> canonical for the subscribed symbols
        self._canonical = {protocol.native_symbol(s).upper(): s for s in self._symbols}

        self._state = FeedState.DISCONNECTED
        self._reconnect = ReconnectState()
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._message_count = 0
        self._dropped_count = 0

    @property
    def exchange_id(self) -> str:
        return self._exchange_id

    @property
    def state(self) -> FeedState:
        """Get current connection state."""
        return self._state

    @property
    def reconnect_state(self) -> ReconnectState:
        return self._reconnect

    @property
    def message_count(self) -> int:
        """Get total frames received."""
        return self._message_count

    @property
    def dropped_count(self) -> int:
        """Get frames dropped as unparseable."""
        return self._dropped_count

    def _set_state(self, state: FeedState) -> None:
        if state is self._state:
            return
        logger.debug(f"[{self._exchange_id}] {self._state.value} -> {state.value}")
        self._state = state
        self._bus.emit(EventType.FEED_STATE, state, source=self._exchange_id)

    async def run(self) -> None:
        """Connection loop with auto-reconnection until stopped or failed."""
        self._running = True

        while self._running:
            self._set_state(FeedState.CONNECTING)

            try:
                await self._run_connection()
                if not self._running:
                    break
                logger.warning(f"[{self._exchange_id}] Connection closed by server")
                self._set_state(FeedState.CLOSED)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._running:
                    break
                error = e if isinstance(e, StreamDisconnectError) else StreamDisconnectError(
                    f"{type(e).__name__}: {e}", exchange=self._exchange_id
                )
                logger.warning(f"[{self._exchange_id}] Stream error: {error}")
                self._set_state(FeedState.ERRORED)

            if not self._running:
                break

            delay_ms = self._policy.delay_for(self._reconnect.retry_count)
            self._reconnect.retry_count += 1
            self._reconnect.next_delay_ms = delay_ms

            if self._reconnect.retry_count > self._policy.max_retries:
                logger.error(
                    f"[{self._exchange_id}] Giving up after {self._policy.max_retries} reconnect attempts"
                )
                self._set_state(FeedState.FAILED)
                self._running = False
                return

            self._set_state(FeedState.RECONNECTING)
            self._metrics.increment_counter("stream_reconnects")
            logger.info(
                f"[{self._exchange_id}] Reconnecting in {delay_ms / 1000:.2f}s "
                f"(attempt {self._reconnect.retry_count}/{self._policy.max_retries})"
            )
            await self._sleep(delay_ms / 1000)

        self._set_state(FeedState.DISCONNECTED)

    async def _run_connection(self) -> None:
        """Open, subscribe and consume one connection until it ends."""
        url = self._protocol.build_url(self._ws_url, self._symbols)
        logger.info(f"[{self._exchange_id}] Connecting for {len(self._symbols)} symbols")

        async with self._connect(url) as ws:
            self._set_state(FeedState.OPEN)
            self._reconnect.reset()
            logger.info(f"[{self._exchange_id}] Connected")

            for frame in self._protocol.subscribe_messages(self._symbols):
                await ws.send_str(frame)

            async for msg in ws:
                if not self._running:
                    return

                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise StreamDisconnectError(f"transport error: {msg.data}", exchange=self._exchange_id)
                elif msg.type in _CLOSING_TYPES:
                    return

    def _handle_text(self, raw: str | bytes) -> None:
        """Decode one frame and apply its book ticks."""
        self._message_count += 1

        try:
            quotes = self._decode(raw)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            self._dropped_count += 1
            self._metrics.increment_counter("stream_parse_errors")
            logger.warning(f"[{self._exchange_id}] Dropping malformed frame: {e!r}")
            return

        for quote in quotes:
            self._cache.upsert(quote)
            self._bus.emit(EventType.QUOTE_UPDATE, QuoteUpdate(quote), source=self._exchange_id)
            self._metrics.increment_counter("stream_updates")

    def _decode(self, raw: str | bytes) -> list[Quote]:
        """
        Turn a frame into quotes for subscribed symbols.

        Ticks for other symbols, or with a zero or non-finite price, are
        skipped. Nothing is written until the whole frame has parsed.
        """
        quotes: list[Quote] = []
        for native, bid, ask in self._protocol.parse(orjson.loads(raw)):
            if not isinstance(native, str):
                raise TypeError(f"symbol must be a string, got {native!r}")
            symbol = self._canonical.get(native.upper())
            if symbol is None or not (is_valid_price(bid) and is_valid_price(ask)):
                continue
            quotes.append(
                Quote(
                    exchange=self._exchange_id,
                    symbol=symbol,
                    bid=bid,
                    ask=ask,
                    timestamp=get_timestamp_ms(),
                )
            )
        return quotes

    def start(self) -> asyncio.Task[None]:
        """Start the connection loop as a task."""
        self._task = asyncio.create_task(self.run(), name=f"stream-{self._exchange_id}")
        return self._task

    async def stop(self) -> None:
        """Stop the connection loop."""
        self._running = False

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=WS_CLOSE_TIMEOUT)
            except (TimeoutError, asyncio.CancelledError):
                pass

        self._task = None
        if self._state is not FeedState.FAILED:
            self._set_state(FeedState.DISCONNECTED)


class StreamingFeedManager:
    """
    Manages one ExchangeStream per streamable exchange.

    Exchanges without a venue protocol or WebSocket URL are skipped.
    Consumers read updates through ``subscribe()``.
    """

    def __init__(
        self,
        exchange_ids: Iterable[str],
        symbols: Iterable[str],
        cache: PriceCache,
        bus: EventBus | None = None,
        configs: Mapping[str, ExchangeConfig] = EXCHANGE_CONFIGS,
        policy: ReconnectPolicy | None = None,
        metrics: MetricsCollector | None = None,
        connect: ConnectFunc | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the manager.

        Args:
            exchange_ids: Exchanges to stream.
            symbols: Canonical symbols to subscribe on each exchange.
            cache: Shared price cache.
            bus: Event bus; a private one is created when omitted.
            configs: Exchange table providing WebSocket URLs.
            policy: Reconnect policy.
            metrics: Optional metrics collector.
            connect: WebSocket opener; an aiohttp session is used when omitted.
            sleep: Awaitable sleep used for reconnect delays.
        """
        self._symbols = list(symbols)
        self._cache = cache
        self._bus = bus if bus is not None else EventBus()
        self._configs = configs
        self._policy = policy if policy is not None else ReconnectPolicy()
        self._metrics = metrics if metrics is not None else MetricsCollector()
        self._connect = connect
        self._sleep = sleep
        self._session: aiohttp.ClientSession | None = None
        self._streams: dict[str, ExchangeStream] = {}
        self._running = False

        # exchange id -> (protocol, ws url)
        self._targets: dict[str, tuple[StreamProtocol, str]] = {}
        for exchange_id in exchange_ids:
            protocol = get_protocol(exchange_id)
            config = self._configs.get(exchange_id)
            if protocol is None or config is None or not config.ws_url:
                logger.info(f"No stream protocol for {exchange_id}, relying on REST refresh")
                continue
            self._targets[exchange_id] = (protocol, config.ws_url)

    def _open_ws(self, url: str) -> AbstractAsyncContextManager[Any]:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session.ws_connect(
            url,
            heartbeat=WS_HEARTBEAT,
            max_msg_size=WS_MAX_MESSAGE_SIZE,
        )

    async def start(self) -> None:
        """Start all exchange streams."""
        if self._running:
            return
        self._running = True

        connect = self._connect or self._open_ws
        for exchange_id, (protocol, ws_url) in self._targets.items():
            stream = ExchangeStream(
                exchange_id=exchange_id,
                protocol=protocol,
                ws_url=ws_url,
                symbols=self._symbols,
                cache=self._cache,
                bus=self._bus,
                connect=connect,
                policy=self._policy,
                metrics=self._metrics,
                sleep=self._sleep,
            )
            self._streams[exchange_id] = stream
            stream.start()

        logger.info(f"Started {len(self._streams)} exchange streams")

    async def stop(self) -> None:
        """Stop all exchange streams."""
        self._running = False

        await asyncio.gather(
            *[stream.stop() for stream in self._streams.values()],
            return_exceptions=True,
        )

        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

        logger.info("All exchange streams stopped")

    def subscribe(self) -> Subscription:
        """Open an independent stream of QuoteUpdate events."""
        return self._bus.subscribe(EventType.QUOTE_UPDATE)

    def states(self) -> dict[str, FeedState]:
        """Get state of all streams."""
        return {exchange_id: stream.state for exchange_id, stream in self._streams.items()}

    def reconnect_states(self) -> dict[str, ReconnectState]:
        return {exchange_id: stream.reconnect_state for exchange_id, stream in self._streams.items()}

    def get_stream(self, exchange_id: str) -> ExchangeStream | None:
        return self._streams.get(exchange_id)

    @property
    def exchange_ids(self) -> list[str]:
        return list(self._targets)

    @property
    def is_running(self) -> bool:
        """Check if manager is running."""
        return self._running

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def total_message_count(self) -> int:
        """Get total frames across all streams."""
        return sum(s.message_count for s in self._streams.values())

    async def __aenter__(self) -> "StreamingFeedManager":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.stop()
