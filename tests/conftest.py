"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Test configuration and markers
- HTTP client mocks for the REST operations
- Fake WebSocket connector for the subscription channel
"""

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from _pytest.config import Config

from modelserver_client import ModelServerClient, SubscriptionChannel
from tests.fixtures.factories import FakeConnector

BASE_URL = "http://localhost:8081/api/v1/"

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (may use external services)")
    config.addinivalue_line("markers", "slow: Slow tests (may take several seconds)")
    config.addinivalue_line("markers", "asyncio: Async tests")
    config.addinivalue_line("markers", "subscription: Subscription channel tests")


# ============================================================================
# HTTP CLIENT FIXTURES
# ============================================================================


@pytest.fixture
def http_client() -> MagicMock:
    """Provide a mock httpx.AsyncClient.

    Tests set ``http_client.request.return_value`` (an httpx.Response) or
    ``http_client.request.side_effect`` (a transport error).
    """
    mock: MagicMock = MagicMock()
    mock.is_closed = False
    mock.request = AsyncMock()
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture
def connector() -> FakeConnector:
    """Provide a fake WebSocket connect function."""
    return FakeConnector()


@pytest.fixture
def client(http_client: MagicMock, connector: FakeConnector) -> Generator[ModelServerClient, None, None]:
    """Provide a ModelServerClient talking to the mocked HTTP client."""
    with patch("modelserver_client.infrastructure.client.httpx.AsyncClient", return_value=http_client):
        yield ModelServerClient(BASE_URL, connect=connector)


# ============================================================================
# SUBSCRIPTION FIXTURES
# ============================================================================


@pytest.fixture
def channel(connector: FakeConnector) -> SubscriptionChannel:
    """Provide a subscription channel using the fake connector."""
    return SubscriptionChannel(BASE_URL, default_format="json", connect=connector)
