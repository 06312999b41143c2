"""Core module containing the main engine, event bus, and type definitions."""

from crossarb.core.event_bus import Event, EventBus, EventType, Subscription
from crossarb.core.types import (
    ArbitrageOpportunity,
    AvailabilityResult,
    ExchangeFetchResult,
    FeedState,
    FetchReport,
    FetchStatus,
    OpportunityStatus,
    Quote,
    QuoteUpdate,
    ReconnectState,
    RefreshSnapshot,
    SnapshotStatus,
)


__all__ = [
    "ArbitrageOpportunity",
    "AvailabilityResult",
    "Event",
    "EventBus",
    "EventType",
    "ExchangeFetchResult",
    "FeedState",
    "FetchReport",
    "FetchStatus",
    "OpportunityStatus",
    "Quote",
    "QuoteUpdate",
    "ReconnectState",
    "RefreshSnapshot",
    "SnapshotStatus",
    "Subscription",
]
