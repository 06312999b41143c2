"""
Internal event bus for decoupled communication.

Publishers push events without knowing who listens; each consumer
iterates its own subscription. Delivery is in-process and ordered per
subscription.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Generic, TypeVar

from crossarb.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


class EventType(Enum):
    """System event types."""

    # Market data events
    QUOTE_UPDATE = auto()

    # Feed lifecycle events
    FEED_STATE = auto()

    # Detection events
    OPPORTUNITIES_UPDATED = auto()


T = TypeVar("T")


@dataclass
class Event(Generic[T]):
    """Generic event with typed payload."""

    type: EventType
    payload: T
    timestamp_ms: int = field(default_factory=get_timestamp_ms)
    source: str = ""


class Subscription:
    """
    One consumer's view of the event stream.

    Iterating yields events in publish order until the subscription is
    closed. Events published before subscribing are not replayed.
    """

    _CLOSED = object()

    def __init__(self, bus: "EventBus", event_types: frozenset[EventType] | None) -> None:
        self._bus = bus
        self._event_types = event_types
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    def wants(self, event: Event[Any]) -> bool:
        return self._event_types is None or event.type in self._event_types

    def deliver(self, event: Event[Any]) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    async def get(self) -> Event[Any]:
        """
        Wait for the next event.

        Raises:
            StopAsyncIteration: If the subscription has been closed.
        """
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Stop receiving events; pending iteration ends after buffered events."""
        if self._closed:
            return
        self._closed = True
        self._bus.unsubscribe(self)
        self._queue.put_nowait(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Buffered events not yet consumed."""
        return self._queue.qsize()

    def __aiter__(self) -> AsyncIterator[Event[Any]]:
        return self

    async def __anext__(self) -> Event[Any]:
        return await self.get()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class EventBus:
    """
    Fan-out event bus for internal messaging.

    Features:
    - Non-blocking publish (never awaits, safe from any loop callback)
    - Independent unbounded queue per subscriber
    - Optional filtering by event type
    """

    def __init__(self) -> None:
        """Initialize event bus."""
        self._subscriptions: list[Subscription] = []
        self._published = 0

    def subscribe(self, *event_types: EventType) -> Subscription:
        """
        Open a new subscription.

        Args:
            event_types: Types to receive; all types when omitted.

        Returns:
            Async-iterable subscription.
        """
        subscription = Subscription(self, frozenset(event_types) if event_types else None)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """
        Remove a subscription.

        Returns:
            True if the subscription was registered.
        """
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            return True
        return False

    def publish(self, event: Event[Any]) -> int:
        """
        Publish an event to all matching subscribers.

        Args:
            event: Event to publish.

        Returns:
            Number of subscribers the event was delivered to.
        """
        self._published += 1
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.wants(event):
                subscription.deliver(event)
                delivered += 1
        return delivered

    def emit(self, event_type: EventType, payload: Any, source: str = "") -> int:
        """Build and publish an event in one call."""
        return self.publish(Event(type=event_type, payload=payload, source=source))

    def close(self) -> None:
        """Close every subscription, ending their iteration."""
        for subscription in list(self._subscriptions):
            subscription.close()
        logger.debug("Event bus closed")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    @property
    def published_count(self) -> int:
        return self._published
