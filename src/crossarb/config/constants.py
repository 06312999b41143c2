"""
Scanner constants and static configuration values.

This module contains all hardcoded values used throughout the scanner.
Values are organized by category for easy maintenance and auditing.
"""

from typing import Final


# =============================================================================
# Exchanges & Symbols
# =============================================================================

# Exchanges polled by default (okx is configured but disabled)
SUPPORTED_EXCHANGES: Final[tuple[str, ...]] = (
    "binance",
    "bitfinex",
    "bitget",
    "bybit",
    "coinbase",
    "gate",
    "kraken",
)

# Exchanges with a streaming feed enabled by default
STREAM_EXCHANGES: Final[tuple[str, ...]] = (
    "binance",
    "bybit",
    "coinbase",
    "kraken",
)

# Main trading pairs, in canonical BASE/QUOTE form
MAIN_SYMBOLS: Final[tuple[str, ...]] = (
    "BTC/USDT",
    "ETH/USDT",
    "SOL/USDT",
    "DOGE/USDT",
    "XRP/USDT",
)

# Quote assets recognised when converting native symbols back to BASE/QUOTE
KNOWN_QUOTE_ASSETS: Final[tuple[str, ...]] = (
    "USDT",
    "USDC",
    "BUSD",
    "USD",
    "EUR",
    "BTC",
    "ETH",
)


# =============================================================================
# Rate Limiting & Timeouts
# =============================================================================

# Pause between request batches on one exchange
DEFAULT_GLOBAL_RATE_LIMIT_MS: Final[int] = 1000

# Requests issued concurrently per exchange batch
DEFAULT_MAX_CONCURRENT_REQUESTS: Final[int] = 3

# Per-request deadline
DEFAULT_REQUEST_TIMEOUT_MS: Final[int] = 15_000

# Deadline for one exchange's whole batch sequence
DEFAULT_EXCHANGE_TIMEOUT_MS: Final[int] = 40_000

# Client-side timeout handed to the connector library
DEFAULT_CONNECTOR_TIMEOUT_MS: Final[int] = 30_000


# =============================================================================
# Arbitrage Detection
# =============================================================================

# Per-leg trading fee (0.1%)
DEFAULT_FEE_RATE: Final[float] = 0.001

# Quotes older than this are skipped by the detector
DEFAULT_FRESHNESS_WINDOW_MS: Final[int] = 60_000

# Share of estimated profit kept after slippage and latency
DEFAULT_SLIPPAGE_FACTOR: Final[float] = 0.9

# Opportunities with an estimated profit at or below this are dropped
DEFAULT_MIN_ESTIMATED_PROFIT: Final[float] = -1.0


# =============================================================================
# Reconnection Strategy
# =============================================================================

DEFAULT_MAX_RETRIES: Final[int] = 10
DEFAULT_INITIAL_DELAY_MS: Final[float] = 1000.0
DEFAULT_MAX_DELAY_MS: Final[float] = 30_000.0
DEFAULT_RECONNECT_FACTOR: Final[float] = 1.5


# =============================================================================
# WebSocket Configuration
# =============================================================================

WS_HEARTBEAT: Final[float] = 30.0  # seconds
WS_MAX_MESSAGE_SIZE: Final[int] = 10 * 1024 * 1024  # 10MB
WS_CLOSE_TIMEOUT: Final[float] = 5.0  # seconds


# =============================================================================
# Engine Loop
# =============================================================================

DEFAULT_REFRESH_INTERVAL_S: Final[float] = 10.0

# Opportunities logged per refresh cycle
TOP_OPPORTUNITIES_LOGGED: Final[int] = 5


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000

# Samples kept per latency series
LATENCY_WINDOW_SIZE: Final[int] = 1000
