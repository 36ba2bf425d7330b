"""Pytest configuration for integration tests.

Integration tests talk to the provider through its real surfaces: the HTTP
app via httpx's ASGI transport, or a spawned provider process.
"""

import sys

import pytest

from toolbridge.transports import ProcessLaunchSpec


@pytest.fixture
def provider_launch_spec():
    """Launch spec for the built-in provider served over stdio."""
    return ProcessLaunchSpec(
        command=sys.executable,
        args=["-m", "toolbridge", "serve", "--transport", "stdio"],
        env={"TOOLBRIDGE_LOG_LEVEL": "DEBUG"},
    )


@pytest.fixture
def initialize_payload():
    """A JSON-RPC initialize request as a consumer would POST it."""
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "initialize",
        "params": {
            "protocolVersion": "2025-03-26",
            "capabilities": {},
            "clientInfo": {"name": "integration-test", "version": "1.0"},
        },
    }
