"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

from collections.abc import Callable

import pytest

from crossarb.config.settings import Settings
from crossarb.core.types import Quote
from crossarb.exchange.unavailable import UnavailablePairRegistry
from crossarb.market.price_cache import PriceCache
from crossarb.strategy.calculator import ArbitrageCalculator
from crossarb.strategy.opportunity import ArbitrageDetector
from crossarb.telemetry.metrics import MetricsCollector
from crossarb.utils.time import get_timestamp_ms
from tests.mocks.websocket import RecordingSleep


# Fixed reference time for deterministic freshness checks
NOW_MS = 1_704_067_200_000


# =============================================================================
# Quote Fixtures
# =============================================================================


QuoteFactory = Callable[..., Quote]


@pytest.fixture
def make_quote() -> QuoteFactory:
    """Factory for quotes stamped at NOW_MS unless told otherwise."""

    def _make(
        exchange: str,
        symbol: str = "BTC/USDT",
        bid: float = 100.0,
        ask: float = 100.0,
        timestamp: int = NOW_MS,
    ) -> Quote:
        return Quote(exchange=exchange, symbol=symbol, bid=bid, ask=ask, timestamp=timestamp)

    return _make


@pytest.fixture
def live_quote() -> QuoteFactory:
    """Factory for quotes stamped with the wall clock."""

    def _make(exchange: str, symbol: str = "BTC/USDT", bid: float = 100.0, ask: float = 100.0) -> Quote:
        return Quote(exchange=exchange, symbol=symbol, bid=bid, ask=ask, timestamp=get_timestamp_ms())

    return _make


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def cache() -> PriceCache:
    """Empty price cache."""
    return PriceCache()


@pytest.fixture
def unavailable() -> UnavailablePairRegistry:
    """Empty unavailable-pair registry."""
    return UnavailablePairRegistry()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


# =============================================================================
# Strategy Fixtures
# =============================================================================


@pytest.fixture
def calculator() -> ArbitrageCalculator:
    """Arbitrage calculator with default settings."""
    return ArbitrageCalculator(fee_rate=0.001, slippage_factor=0.9)


@pytest.fixture
def detector(calculator: ArbitrageCalculator) -> ArbitrageDetector:
    """Detector with the default 60s freshness window."""
    return ArbitrageDetector(calculator=calculator, freshness_window_ms=60_000, min_estimated_profit=-1.0)


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, streaming disabled."""
    return Settings(
        _env_file=None,
        exchanges=["alpha", "beta", "gamma"],
        symbols=["BTC/USDT", "ETH/USDT"],
        enable_streaming=False,
        global_rate_limit_ms=0,
        request_timeout_ms=200,
        exchange_timeout_ms=1_000,
    )


# =============================================================================
# Async Utilities
# =============================================================================


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep stand-in recording requested delays."""
    return RecordingSleep()
