"""
Per-exchange static configuration.

Endpoints, client timeouts and library options for every exchange the
scanner knows about, plus the symbol remapping tables and the seed list
of pairs known to be unsupported.
"""

from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field

from crossarb.config.constants import DEFAULT_CONNECTOR_TIMEOUT_MS


class ExchangeConfig(BaseModel):
    """Static connection settings for one exchange."""

    model_config = ConfigDict(frozen=True)

    base_url: str | None = None
    ws_url: str | None = None
    timeout_ms: int = Field(default=DEFAULT_CONNECTOR_TIMEOUT_MS, gt=0)
    rate_limited: bool = True
    order_book_depth: int | None = Field(default=None, gt=0)
    options: dict[str, Any] = Field(default_factory=dict)


EXCHANGE_CONFIGS: Final[dict[str, ExchangeConfig]] = {
    "binance": ExchangeConfig(
        base_url="https://api.binance.com",
        ws_url="wss://stream.binance.com:9443/stream",
        options={"adjustForTimeDifference": True, "recvWindow": 10000},
    ),
    "bitfinex": ExchangeConfig(
        base_url="https://api.bitfinex.com",
        ws_url="wss://api-pub.bitfinex.com/ws/2",
    ),
    "bitget": ExchangeConfig(
        base_url="https://api.bitget.com",
        ws_url="wss://ws.bitget.com/spot/v1/stream",
        options={"defaultType": "spot"},
    ),
    "bybit": ExchangeConfig(
        base_url="https://api.bybit.com",
        ws_url="wss://stream.bybit.com/v5/public/spot",
        options={"recvWindow": 10000},
    ),
    "coinbase": ExchangeConfig(
        base_url="https://api.exchange.coinbase.com",
        ws_url="wss://ws-feed.exchange.coinbase.com",
    ),
    "gate": ExchangeConfig(
        base_url="https://api.gateio.ws/api/v4",
        ws_url="wss://api.gateio.ws/ws/v4/",
    ),
    "kraken": ExchangeConfig(
        base_url="https://api.kraken.com",
        ws_url="wss://ws.kraken.com",
    ),
    "okx": ExchangeConfig(
        base_url="https://api.okx.com",
        ws_url="wss://ws.okx.com:8443/ws/v5/public",
        timeout_ms=60_000,
        order_book_depth=5,
        options={
            "defaultType": "spot",
            "fetchMarkets": {"method": "GET"},
            "adjustForTimeDifference": True,
            "recvWindow": 10000,
        },
    ),
}

# Exchange-specific option overrides applied on top of EXCHANGE_CONFIGS
EXCHANGE_OVERRIDES: Final[dict[str, dict[str, Any]]] = {
    "okx": {"createMarketBuyOrderRequiresPrice": False},
    "kraken": {"fetchOrderBookWarning": False},
}

# Canonical symbol -> symbol the connector expects, where they differ
SYMBOL_MAPPINGS: Final[dict[str, dict[str, str]]] = {
    "coinbase": {
        "BTC/USDT": "BTC-USDT",
        "ETH/USDT": "ETH-USDT",
        "SOL/USDT": "SOL-USDT",
        "XRP/USDT": "XRP-USDT",
        "ADA/USDT": "ADA-USDT",
        "DOT/USDT": "DOT-USDT",
        "DOGE/USDT": "DOGE-USDT",
        "AVAX/USDT": "AVAX-USDT",
        "MATIC/USDT": "MATIC-USDT",
        "LINK/USDT": "LINK-USDT",
    },
    "bitget": {"MATIC/USDT": "MATICUSDT"},
    "bybit": {"MATIC/USDT": "MATICUSDT"},
    "okx": {
        "BTC/USDT": "BTC-USDT-SPOT",
        "ETH/USDT": "ETH-USDT-SPOT",
        "SOL/USDT": "SOL-USDT-SPOT",
        "XRP/USDT": "XRP-USDT-SPOT",
        "ADA/USDT": "ADA-USDT-SPOT",
        "DOT/USDT": "DOT-USDT-SPOT",
        "DOGE/USDT": "DOGE-USDT-SPOT",
        "AVAX/USDT": "AVAX-USDT-SPOT",
        "MATIC/USDT": "MATIC-USDT-SPOT",
        "LINK/USDT": "LINK-USDT-SPOT",
    },
    "gate": {"MATIC/USDT": "MATIC_USDT"},
}

# Pairs known to be unsupported before any request is made
UNAVAILABLE_PAIRS: Final[dict[str, tuple[str, ...]]] = {
    "bitget": ("MATIC/USDT",),
    "bybit": ("MATIC/USDT",),
}
