"""
Integration tests for the streaming feeds.

Drives ExchangeStream and StreamingFeedManager with scripted sockets
to cover cache writes, event publication and reconnect behavior.
"""

import asyncio

import orjson
import pytest

from crossarb.core.event_bus import Event, EventBus, EventType, Subscription
from crossarb.core.types import FeedState, QuoteUpdate
from crossarb.market.price_cache import PriceCache
from crossarb.market.protocols import BinanceProtocol, BybitProtocol
from crossarb.market.websocket import ExchangeStream, ReconnectPolicy, StreamingFeedManager
from crossarb.telemetry.metrics import MetricsCollector
from tests.mocks.websocket import MockConnector, MockWebSocket, RecordingSleep


BINANCE_URL = "wss://stream.binance.com:9443/stream"
BYBIT_URL = "wss://stream.bybit.com/v5/public/spot"


def binance_frame(symbol: str, bid: str, ask: str) -> dict:
    return {
        "stream": f"{symbol.lower()}@bookTicker",
        "data": {"u": 1, "s": symbol, "b": bid, "B": "1.0", "a": ask, "A": "1.0"},
    }


def bybit_frame(symbol: str, bid: str, ask: str) -> dict:
    return {
        "topic": f"orderbook.1.{symbol}",
        "type": "snapshot",
        "data": {"s": symbol, "b": [[bid, "1.0"]], "a": [[ask, "2.0"]]},
    }


def make_stream(
    connect: MockConnector,
    cache: PriceCache,
    bus: EventBus,
    protocol=None,
    ws_url: str = BINANCE_URL,
    max_retries: int = 0,
    metrics: MetricsCollector | None = None,
    sleep: RecordingSleep | None = None,
) -> ExchangeStream:
    protocol = protocol if protocol is not None else BinanceProtocol()
    return ExchangeStream(
        exchange_id=protocol.exchange_id,
        protocol=protocol,
        ws_url=ws_url,
        symbols=["BTC/USDT", "ETH/USDT"],
        cache=cache,
        bus=bus,
        connect=connect,
        policy=ReconnectPolicy(max_retries=max_retries),
        metrics=metrics,
        sleep=sleep or RecordingSleep(),
    )


async def drain(subscription: Subscription) -> list[Event]:
    """Collect all buffered events."""
    return [await subscription.get() for _ in range(subscription.pending)]


class TestExchangeStream:
    """Tests for a single exchange stream."""

    @pytest.mark.asyncio
    async def test_ticks_update_cache_and_publish(self, cache: PriceCache) -> None:
        bus = EventBus()
        updates = bus.subscribe(EventType.QUOTE_UPDATE)
        socket = MockWebSocket([MockWebSocket.text(binance_frame("BTCUSDT", "42000.1", "42000.2"))])
        connect = MockConnector([socket])
        stream = make_stream(connect, cache, bus)

        await stream.run()

        quote = cache.get("BTC/USDT", "binance")
        assert quote is not None
        assert (quote.bid, quote.ask) == (42000.1, 42000.2)

        event = await updates.get()
        assert isinstance(event.payload, QuoteUpdate)
        assert event.payload.quote == quote
        assert event.source == "binance"
        assert connect.urls[0] == f"{BINANCE_URL}?streams=btcusdt@bookTicker/ethusdt@bookTicker"

    @pytest.mark.asyncio
    async def test_subscribe_frames_sent_on_open(self, cache: PriceCache) -> None:
        socket = MockWebSocket([MockWebSocket.text(bybit_frame("ETHUSDT", "2500.1", "2500.2"))])
        stream = make_stream(MockConnector([socket]), cache, EventBus(), protocol=BybitProtocol(), ws_url=BYBIT_URL)

        await stream.run()

        assert [orjson.loads(frame) for frame in socket.sent] == [
            {"op": "subscribe", "args": ["orderbook.1.BTCUSDT", "orderbook.1.ETHUSDT"]}
        ]
        quote = cache.get("ETH/USDT", "bybit")
        assert quote is not None
        assert (quote.bid, quote.ask) == (2500.1, 2500.2)

    @pytest.mark.asyncio
    async def test_malformed_frames_are_dropped(self, cache: PriceCache, metrics: MetricsCollector) -> None:
        socket = MockWebSocket(
            [
                MockWebSocket.raw("not json"),
                MockWebSocket.text({"stream": "btcusdt@bookTicker", "data": {"s": "BTCUSDT"}}),
                MockWebSocket.text(binance_frame("ETHUSDT", "2500.0", "2500.5")),
            ]
        )
        stream = make_stream(MockConnector([socket]), cache, EventBus(), metrics=metrics)

        await stream.run()

        assert stream.message_count == 3
        assert stream.dropped_count == 2
        assert metrics.get_counter("stream_parse_errors") == 2
        assert cache.get("ETH/USDT", "binance") is not None
        assert cache.get("BTC/USDT", "binance") is None

    @pytest.mark.asyncio
    async def test_non_positive_and_unknown_ticks_ignored(self, cache: PriceCache) -> None:
        bus = EventBus()
        updates = bus.subscribe(EventType.QUOTE_UPDATE)
        socket = MockWebSocket(
            [
                MockWebSocket.text(binance_frame("BTCUSDT", "0", "42000.0")),
                MockWebSocket.text(binance_frame("SOLUSDT", "100.0", "100.1")),
                MockWebSocket.text({"result": None, "id": 1}),
            ]
        )
        stream = make_stream(MockConnector([socket]), cache, bus)

        await stream.run()

        assert cache.size == 0
        assert updates.pending == 0
        assert stream.dropped_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("protocol", "ws_url", "bad", "good"),
        [
            (
                BinanceProtocol(),
                BINANCE_URL,
                {"stream": "btcusdt@bookTicker", "data": {"s": 123, "b": "1.0", "a": "1.1"}},
                binance_frame("BTCUSDT", "42000.0", "42000.5"),
            ),
            (
                BybitProtocol(),
                BYBIT_URL,
                {"topic": "orderbook.1.BTCUSDT", "type": "snapshot", "data": "oops"},
                bybit_frame("BTCUSDT", "42000.0", "42000.5"),
            ),
        ],
        ids=["binance-numeric-symbol", "bybit-string-payload"],
    )
    async def test_bad_payload_does_not_end_stream(
        self, cache: PriceCache, metrics: MetricsCollector, protocol, ws_url: str, bad: dict, good: dict
    ) -> None:
        connect = MockConnector([MockWebSocket([MockWebSocket.text(bad), MockWebSocket.text(good)])])
        stream = make_stream(connect, cache, EventBus(), protocol=protocol, ws_url=ws_url, metrics=metrics)

        await stream.run()

        assert stream.dropped_count == 1
        assert metrics.get_counter("stream_parse_errors") == 1
        assert connect.attempts == 1
        quote = cache.get("BTC/USDT", protocol.exchange_id)
        assert quote is not None
        assert (quote.bid, quote.ask) == (42000.0, 42000.5)

    @pytest.mark.asyncio
    async def test_non_finite_prices_ignored(self, cache: PriceCache) -> None:
        bus = EventBus()
        updates = bus.subscribe(EventType.QUOTE_UPDATE)
        socket = MockWebSocket(
            [
                MockWebSocket.text(binance_frame("BTCUSDT", "NaN", "42000.0")),
                MockWebSocket.text(binance_frame("ETHUSDT", "2500.0", "inf")),
            ]
        )
        stream = make_stream(MockConnector([socket]), cache, bus)

        await stream.run()

        assert cache.size == 0
        assert updates.pending == 0
        assert stream.dropped_count == 0

    @pytest.mark.asyncio
    async def test_state_transitions_on_transport_error(self, cache: PriceCache) -> None:
        bus = EventBus()
        states = bus.subscribe(EventType.FEED_STATE)
        socket = MockWebSocket([MockWebSocket.error()])
        stream = make_stream(MockConnector([socket]), cache, bus)

        await stream.run()

        assert [event.payload for event in await drain(states)] == [
            FeedState.CONNECTING,
            FeedState.OPEN,
            FeedState.ERRORED,
            FeedState.FAILED,
        ]
        assert stream.state is FeedState.FAILED

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, cache: PriceCache, metrics: MetricsCollector) -> None:
        connect = MockConnector()
        sleep = RecordingSleep()
        stream = make_stream(connect, cache, EventBus(), max_retries=3, metrics=metrics, sleep=sleep)

        await stream.run()

        assert sleep.delays == pytest.approx([1.0, 1.5, 2.25])
        assert connect.attempts == 4
        assert stream.state is FeedState.FAILED
        assert stream.reconnect_state.retry_count == 4
        assert metrics.get_counter("stream_reconnects") == 3

    @pytest.mark.asyncio
    async def test_successful_open_resets_backoff(self, cache: PriceCache) -> None:
        connect = MockConnector(
            [
                ConnectionRefusedError("refused"),
                ConnectionRefusedError("refused"),
                MockWebSocket(),
            ]
        )
        sleep = RecordingSleep()
        stream = make_stream(connect, cache, EventBus(), max_retries=3, sleep=sleep)

        await stream.run()

        assert sleep.delays == pytest.approx([1.0, 1.5, 1.0, 1.5, 2.25])
        assert connect.attempts == 6

    @pytest.mark.asyncio
    async def test_stop_disconnects_open_stream(self, cache: PriceCache) -> None:
        socket = MockWebSocket(hold_open=True)
        stream = make_stream(MockConnector([socket]), cache, EventBus())

        stream.start()
        for _ in range(5):
            await asyncio.sleep(0)
        assert stream.state is FeedState.OPEN

        await stream.stop()

        assert stream.state is FeedState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_stop_keeps_failed_state(self, cache: PriceCache) -> None:
        stream = make_stream(MockConnector(), cache, EventBus())

        await stream.run()
        await stream.stop()

        assert stream.state is FeedState.FAILED


class TestStreamingFeedManager:
    """Tests for the multi-exchange feed manager."""

    def test_skips_exchanges_without_stream(self, cache: PriceCache) -> None:
        manager = StreamingFeedManager(
            exchange_ids=["binance", "gate", "bybit", "nowhere"],
            symbols=["BTC/USDT"],
            cache=cache,
        )

        assert manager.exchange_ids == ["binance", "bybit"]

    @pytest.mark.asyncio
    async def test_streams_feed_shared_cache(self, cache: PriceCache) -> None:
        sockets = {
            "binance": MockWebSocket(hold_open=True),
            "bybit": MockWebSocket(hold_open=True),
        }

        def connect(url: str) -> MockWebSocket:
            return sockets["binance"] if "binance" in url else sockets["bybit"]

        manager = StreamingFeedManager(
            exchange_ids=["binance", "bybit"],
            symbols=["BTC/USDT", "ETH/USDT"],
            cache=cache,
            connect=connect,
            sleep=RecordingSleep(),
        )
        updates = manager.subscribe()

        async with manager:
            sockets["binance"].push(MockWebSocket.text(binance_frame("BTCUSDT", "42000.0", "42000.5")))
            sockets["bybit"].push(MockWebSocket.text(bybit_frame("BTCUSDT", "42001.0", "42001.5")))

            received = [await asyncio.wait_for(updates.get(), timeout=1.0) for _ in range(2)]

            assert {e.payload.quote.exchange for e in received} == {"binance", "bybit"}
            assert manager.states() == {"binance": FeedState.OPEN, "bybit": FeedState.OPEN}
            assert manager.total_message_count == 2
            assert manager.get_stream("binance").message_count == 1
            assert manager.reconnect_states()["bybit"].retry_count == 0

        assert cache.exchanges_for("BTC/USDT") == frozenset({"binance", "bybit"})
        assert set(manager.states().values()) == {FeedState.DISCONNECTED}
        assert not manager.is_running

    @pytest.mark.asyncio
    async def test_independent_subscribers(self, cache: PriceCache) -> None:
        socket = MockWebSocket(hold_open=True)
        manager = StreamingFeedManager(
            exchange_ids=["binance"],
            symbols=["BTC/USDT"],
            cache=cache,
            connect=lambda url: socket,
        )
        first = manager.subscribe()
        second = manager.subscribe()

        async with manager:
            socket.push(MockWebSocket.text(binance_frame("BTCUSDT", "1.0", "1.1")))
            a = await asyncio.wait_for(first.get(), timeout=1.0)
            b = await asyncio.wait_for(second.get(), timeout=1.0)

        assert a.payload.quote == b.payload.quote
