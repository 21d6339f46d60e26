"""
Shared fixtures for the connection and client tests.
"""

from unittest.mock import AsyncMock, patch

import pytest

from fakes import FakeWebSocket


@pytest.fixture
def fake_ws():
    return FakeWebSocket()


@pytest.fixture
def mock_connect(fake_ws):
    """Patch websockets.connect to hand out the fake connection."""
    connect_mock = AsyncMock(return_value=fake_ws)
    with patch("cfws.clients.connection.websockets.connect", side_effect=connect_mock):
        yield connect_mock
