"""
Exchange connector registry.

Builds one ccxt async client per supported exchange from static
configuration. Constructors come from an explicit id -> class table,
so an unknown exchange id is a configuration error caught at
initialization rather than a failed attribute lookup later.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

import ccxt.async_support as ccxt_async

from crossarb.config.constants import SUPPORTED_EXCHANGES
from crossarb.config.exchanges import (
    EXCHANGE_CONFIGS,
    EXCHANGE_OVERRIDES,
    SYMBOL_MAPPINGS,
    ExchangeConfig,
)
from crossarb.core.types import ExchangeClient
from crossarb.market.symbols import SymbolMapper


logger = logging.getLogger(__name__)


ClientFactory = Callable[[dict[str, Any]], ExchangeClient]

CONNECTOR_CLASSES: Final[dict[str, ClientFactory]] = {
    "binance": ccxt_async.binance,
    "bitfinex": ccxt_async.bitfinex,
    "bitget": ccxt_async.bitget,
    "bybit": ccxt_async.bybit,
    "coinbase": ccxt_async.coinbase,
    "gate": ccxt_async.gate,
    "kraken": ccxt_async.kraken,
    "okx": ccxt_async.okx,
}


@dataclass(frozen=True, slots=True)
class Connector:
    """
    Handle for one exchange.

    Immutable after construction; the registry replaces connectors
    wholesale on re-initialization.
    """

    exchange_id: str
    client: ExchangeClient
    config: ExchangeConfig
    symbols: SymbolMapper = field(default_factory=SymbolMapper)

    @property
    def can_fetch_order_book(self) -> bool:
        return bool(self.client.has.get("fetchOrderBook"))

    @property
    def can_load_markets(self) -> bool:
        # ccxt lists market loading as "fetchMarkets"
        return bool(self.client.has.get("fetchMarkets", True))

    @property
    def rate_limit(self) -> float:
        """Suggested minimum milliseconds between calls."""
        return float(getattr(self.client, "rateLimit", 0) or 0)

    @property
    def order_book_depth(self) -> int | None:
        return self.config.order_book_depth

    def to_native(self, symbol: str) -> str:
        """Symbol as the connector expects it."""
        return self.symbols.to_native(symbol)

    async def close(self) -> None:
        await self.client.close()


def build_client_options(
    exchange_id: str,
    config: ExchangeConfig,
    proxy_url: str | None = None,
) -> dict[str, Any]:
    """
    Merge static configuration and exchange overrides into client options.

    Args:
        exchange_id: Exchange id.
        config: Static exchange configuration.
        proxy_url: Optional HTTPS proxy.

    Returns:
        Options dict for the ccxt exchange constructor.
    """
    options: dict[str, Any] = {
        "enableRateLimit": config.rate_limited,
        "timeout": config.timeout_ms,
        "options": {**config.options, **EXCHANGE_OVERRIDES.get(exchange_id, {})},
    }
    if proxy_url:
        options["https_proxy"] = proxy_url
    return options


class ConnectorRegistry:
    """
    Owns the live map of exchange id -> Connector.

    Construction failures are logged and the exchange is omitted;
    ``initialize()`` never raises for a single bad exchange.
    """

    def __init__(
        self,
        exchange_ids: Iterable[str] = SUPPORTED_EXCHANGES,
        configs: Mapping[str, ExchangeConfig] = EXCHANGE_CONFIGS,
        symbol_mappings: Mapping[str, Mapping[str, str]] = SYMBOL_MAPPINGS,
        factories: Mapping[str, ClientFactory] = CONNECTOR_CLASSES,
        proxy_url: str | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            exchange_ids: Exchanges to build connectors for.
            configs: Static per-exchange configuration.
            symbol_mappings: Per-exchange canonical -> native symbols.
            factories: Exchange id -> client constructor.
            proxy_url: Optional HTTPS proxy for every client.
        """
        self._exchange_ids = list(exchange_ids)
        self._configs = configs
        self._symbol_mappings = symbol_mappings
        self._factories = factories
        self._proxy_url = proxy_url
        self._connectors: dict[str, Connector] = {}

    def initialize(self) -> dict[str, Connector]:
        """
        Build connectors for every configured exchange.

        Discards previously built connectors first. Callers holding
        clients from a previous initialization should ``await close()``
        before re-initializing.

        Returns:
            Live map of exchange id -> Connector.
        """
        self._connectors = {}

        for exchange_id in self._exchange_ids:
            factory = self._factories.get(exchange_id)
            if factory is None:
                logger.error(f"No connector available for exchange {exchange_id}")
                continue

            config = self._configs.get(exchange_id, ExchangeConfig())
            try:
                client = factory(build_client_options(exchange_id, config, self._proxy_url))
            except Exception as e:
                logger.error(f"Failed to initialize {exchange_id}: {e}")
                continue

            self._connectors[exchange_id] = Connector(
                exchange_id=exchange_id,
                client=client,
                config=config,
                symbols=SymbolMapper(self._symbol_mappings.get(exchange_id, {})),
            )
            logger.info(f"Initialized exchange connector: {exchange_id}")

        logger.info(f"{len(self._connectors)}/{len(self._exchange_ids)} connectors ready")
        return self._connectors

    def get(self, exchange_id: str) -> Connector | None:
        """Get the connector for an exchange, if initialized."""
        return self._connectors.get(exchange_id)

    @property
    def connectors(self) -> dict[str, Connector]:
        """Live connector map."""
        return self._connectors

    @property
    def exchange_ids(self) -> list[str]:
        return list(self._connectors.keys())

    def rate_limits(self) -> dict[str, dict[str, Any]]:
        """
        Get diagnostic rate-limit info per exchange.

        Returns:
            Exchange id -> {"rate_limit": ms, "has": capability map}.
        """
        return {
            exchange_id: {
                "rate_limit": connector.rate_limit,
                "has": dict(connector.client.has),
            }
            for exchange_id, connector in self._connectors.items()
        }

    async def close(self) -> None:
        """Close every client session."""
        results = await asyncio.gather(
            *[c.close() for c in self._connectors.values()],
            return_exceptions=True,
        )
        for exchange_id, result in zip(self._connectors, results):
            if isinstance(result, Exception):
                logger.warning(f"Error closing {exchange_id}: {result}")

    def __contains__(self, exchange_id: str) -> bool:
        return exchange_id in self._connectors

    def __len__(self) -> int:
        return len(self._connectors)
