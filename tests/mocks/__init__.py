"""Mock implementations for testing."""

from tests.mocks.exchange import MockExchangeClient, make_connector
from tests.mocks.websocket import MockConnector, MockMessage, MockWebSocket, RecordingSleep


__all__ = [
    "MockConnector",
    "MockExchangeClient",
    "MockMessage",
    "MockWebSocket",
    "RecordingSleep",
    "make_connector",
]
