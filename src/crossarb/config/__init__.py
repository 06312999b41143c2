"""Configuration module for the arbitrage scanner."""

from crossarb.config.constants import (
    DEFAULT_FEE_RATE,
    DEFAULT_FRESHNESS_WINDOW_MS,
    MAIN_SYMBOLS,
    SUPPORTED_EXCHANGES,
)
from crossarb.config.exchanges import EXCHANGE_CONFIGS, SYMBOL_MAPPINGS, ExchangeConfig
from crossarb.config.settings import Settings, get_settings


__all__ = [
    "DEFAULT_FEE_RATE",
    "DEFAULT_FRESHNESS_WINDOW_MS",
    "EXCHANGE_CONFIGS",
    "MAIN_SYMBOLS",
    "SUPPORTED_EXCHANGES",
    "SYMBOL_MAPPINGS",
    "ExchangeConfig",
    "Settings",
    "get_settings",
]
