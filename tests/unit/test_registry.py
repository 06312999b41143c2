"""
Unit tests for the connector registry.
"""

import pytest

from crossarb.config.exchanges import ExchangeConfig
from crossarb.exchange.registry import ConnectorRegistry
from tests.mocks.exchange import MockExchangeClient


class TestConnectorRegistry:
    """Tests for connector construction."""

    def test_builds_connectors_with_options(self) -> None:
        seen: list[dict] = []

        def factory(options: dict) -> MockExchangeClient:
            seen.append(options)
            return MockExchangeClient("okx")

        registry = ConnectorRegistry(
            exchange_ids=["okx"],
            configs={"okx": ExchangeConfig(timeout_ms=60_000, order_book_depth=5)},
            symbol_mappings={"okx": {"BTC/USDT": "BTC-USDT"}},
            factories={"okx": factory},
            proxy_url="http://proxy:8080",
        )

        connectors = registry.initialize()

        connector = connectors["okx"]
        assert connector.order_book_depth == 5
        assert connector.to_native("BTC/USDT") == "BTC-USDT"
        assert connector.to_native("ETH/USDT") == "ETH/USDT"
        assert seen[0]["timeout"] == 60_000
        assert seen[0]["https_proxy"] == "http://proxy:8080"

    def test_unknown_and_failing_exchanges_are_skipped(self) -> None:
        def broken(options: dict) -> MockExchangeClient:
            raise RuntimeError("bad credentials")

        registry = ConnectorRegistry(
            exchange_ids=["alpha", "broken", "missing"],
            factories={"alpha": lambda opts: MockExchangeClient("alpha"), "broken": broken},
        )

        registry.initialize()

        assert registry.exchange_ids == ["alpha"]
        assert "broken" not in registry
        assert registry.get("missing") is None

    def test_reinitialize_replaces_connectors(self) -> None:
        registry = ConnectorRegistry(
            exchange_ids=["alpha"],
            factories={"alpha": lambda opts: MockExchangeClient("alpha")},
        )

        first = registry.initialize()["alpha"]
        second = registry.initialize()["alpha"]

        assert first is not second
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_close_tolerates_errors(self) -> None:
        class ExplodingClient(MockExchangeClient):
            async def close(self) -> None:
                raise RuntimeError("already closed")

        healthy = MockExchangeClient("alpha")
        registry = ConnectorRegistry(
            exchange_ids=["alpha", "beta"],
            factories={"alpha": lambda opts: healthy, "beta": lambda opts: ExplodingClient("beta")},
        )
        registry.initialize()

        await registry.close()

        assert healthy.closed
