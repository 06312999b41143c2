"""Exchange integration module: connectors, errors and bulk fetching."""

from crossarb.exchange.errors import FeedError, classify_error
from crossarb.exchange.fetcher import FetchOrchestrator
from crossarb.exchange.rate_limiter import BatchRateLimiter
from crossarb.exchange.registry import Connector, ConnectorRegistry
from crossarb.exchange.unavailable import UnavailablePairRegistry


__all__ = [
    "BatchRateLimiter",
    "Connector",
    "ConnectorRegistry",
    "FeedError",
    "FetchOrchestrator",
    "UnavailablePairRegistry",
    "classify_error",
]
