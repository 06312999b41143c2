"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from crossarb.config.constants import (
    DEFAULT_EXCHANGE_TIMEOUT_MS,
    DEFAULT_FEE_RATE,
    DEFAULT_FRESHNESS_WINDOW_MS,
    DEFAULT_GLOBAL_RATE_LIMIT_MS,
    DEFAULT_INITIAL_DELAY_MS,
    DEFAULT_MAX_CONCURRENT_REQUESTS,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_ESTIMATED_PROFIT,
    DEFAULT_RECONNECT_FACTOR,
    DEFAULT_REFRESH_INTERVAL_S,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_SLIPPAGE_FACTOR,
    MAIN_SYMBOLS,
    STREAM_EXCHANGES,
    SUPPORTED_EXCHANGES,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables
    prefixed with ``CROSSARB_`` (list values as JSON arrays).
    """

    model_config = SettingsConfigDict(
        env_prefix="CROSSARB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Markets
    # =========================================================================

    exchanges: list[str] = Field(
        default_factory=lambda: list(SUPPORTED_EXCHANGES),
        description="Exchange ids polled by the fetch orchestrator",
    )

    symbols: list[str] = Field(
        default_factory=lambda: list(MAIN_SYMBOLS),
        description="Canonical BASE/QUOTE symbols to compare",
    )

    # =========================================================================
    # Fetch Orchestration
    # =========================================================================

    max_concurrent_requests: int = Field(
        default=DEFAULT_MAX_CONCURRENT_REQUESTS,
        ge=1,
        le=50,
        description="Concurrent order book requests per exchange batch",
    )

    global_rate_limit_ms: int = Field(
        default=DEFAULT_GLOBAL_RATE_LIMIT_MS,
        ge=0,
        description="Pause between request batches on one exchange",
    )

    request_timeout_ms: int = Field(
        default=DEFAULT_REQUEST_TIMEOUT_MS,
        gt=0,
        description="Deadline for a single order book request",
    )

    exchange_timeout_ms: int = Field(
        default=DEFAULT_EXCHANGE_TIMEOUT_MS,
        gt=0,
        description="Deadline for one exchange's whole batch sequence",
    )

    proxy_url: str | None = Field(
        default=None,
        description="Optional HTTPS proxy handed to every connector",
    )

    # =========================================================================
    # Detection
    # =========================================================================

    fee_rate: float = Field(
        default=DEFAULT_FEE_RATE,
        ge=0.0,
        le=0.01,
        description="Trading fee rate per leg (e.g., 0.001 = 0.1%)",
    )

    freshness_window_ms: int = Field(
        default=DEFAULT_FRESHNESS_WINDOW_MS,
        gt=0,
        description="Maximum quote age eligible for comparison",
    )

    slippage_factor: float = Field(
        default=DEFAULT_SLIPPAGE_FACTOR,
        gt=0.0,
        le=1.0,
        description="Share of estimated profit kept as net profit",
    )

    min_estimated_profit: float = Field(
        default=DEFAULT_MIN_ESTIMATED_PROFIT,
        description="Opportunities must have an estimated profit above this",
    )

    # =========================================================================
    # Streaming
    # =========================================================================

    enable_streaming: bool = Field(
        default=True,
        description="Run WebSocket feeds alongside the periodic refresh",
    )

    stream_exchanges: list[str] = Field(
        default_factory=lambda: list(STREAM_EXCHANGES),
        description="Exchange ids with a streaming feed",
    )

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        description="Reconnect attempts before a feed is marked failed",
    )

    initial_delay_ms: float = Field(
        default=DEFAULT_INITIAL_DELAY_MS,
        gt=0.0,
        description="First reconnect delay",
    )

    max_delay_ms: float = Field(
        default=DEFAULT_MAX_DELAY_MS,
        gt=0.0,
        description="Upper bound for the reconnect delay",
    )

    reconnect_factor: float = Field(
        default=DEFAULT_RECONNECT_FACTOR,
        ge=1.0,
        description="Growth factor applied per reconnect attempt",
    )

    # =========================================================================
    # Operation Mode
    # =========================================================================

    refresh_interval_s: float = Field(
        default=DEFAULT_REFRESH_INTERVAL_S,
        gt=0.0,
        description="Seconds between bulk refresh cycles",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional log file path",
    )

    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("exchanges", "stream_exchanges", mode="after")
    @classmethod
    def normalize_exchange_ids(cls, v: list[str]) -> list[str]:
        """Lower-case exchange ids and drop duplicates, keeping order."""
        return list(dict.fromkeys(e.strip().lower() for e in v if e.strip()))

    @field_validator("symbols", mode="after")
    @classmethod
    def validate_symbols(cls, v: list[str]) -> list[str]:
        """Ensure symbols are in BASE/QUOTE form."""
        normalized = []
        for symbol in v:
            symbol = symbol.strip().upper()
            if symbol.count("/") != 1:
                raise ValueError(f"Symbol {symbol!r} must be in BASE/QUOTE form")
            normalized.append(symbol)
        if not normalized:
            raise ValueError("At least one symbol is required")
        return list(dict.fromkeys(normalized))

    @model_validator(mode="after")
    def validate_timeouts(self) -> "Settings":
        """Warn if the exchange deadline cannot fit a single request."""
        if self.exchange_timeout_ms < self.request_timeout_ms:
            warnings.warn(
                f"exchange_timeout_ms={self.exchange_timeout_ms} is shorter than "
                f"request_timeout_ms={self.request_timeout_ms}",
                stacklevel=2,
            )
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def round_trip_fee_rate(self) -> float:
        """Fee rate for a buy leg plus a sell leg."""
        return self.fee_rate * 2


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()
