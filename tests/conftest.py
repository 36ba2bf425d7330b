"""Pytest configuration and shared fixtures for toolbridge tests.

This module provides common fixtures used across all test modules,
including test app creation, async client setup and an in-memory
consumer/provider pair.
"""

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from toolbridge import create_app
from toolbridge.client import ClientSession
from toolbridge.config import ToolBridgeSettings
from toolbridge.tools import build_default_server
from toolbridge.transports import create_memory_transport_pair


@pytest.fixture
def test_settings():
    """Create test settings independent of the environment.

    Returns:
        ToolBridgeSettings: Settings instance configured for testing.
    """
    return ToolBridgeSettings(
        host="127.0.0.1",
        port=3000,
        http_path="/mcp",
        llm_api_key=None,
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def tool_server(test_settings):
    """A provider with the built-in arithmetic tools."""
    return build_default_server(test_settings)


@pytest.fixture
def test_app(tool_server, test_settings):
    """Create a FastAPI test application instance.

    Args:
        tool_server: Provider fixture.
        test_settings: Test settings fixture.

    Returns:
        FastAPI: Configured test application.
    """
    return create_app(server=tool_server, settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints.

    Args:
        test_app: Test application fixture.

    Yields:
        AsyncClient: Async HTTP client for making test requests.
    """
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest_asyncio.fixture
async def served_session(tool_server):
    """A ready ClientSession talking to the built-in provider in memory.

    Yields:
        ClientSession: Session in the READY state.
    """
    client_end, server_end = create_memory_transport_pair()
    serving = asyncio.create_task(tool_server.serve(server_end))
    session = ClientSession(client_end, handshake_timeout=5.0)
    await session.connect()

    yield session

    await session.disconnect()
    await asyncio.wait_for(serving, timeout=5.0)
