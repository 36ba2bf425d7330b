"""Integration tests for the process-pipe transport with a real child process."""

import asyncio
import sys

import pytest

from toolbridge.client import ClientSession, SessionState
from toolbridge.errors import ConnectionLostError, SessionNotReadyError, TransportError
from toolbridge.transports import ProcessLaunchSpec, StdioTransport


@pytest.mark.asyncio
async def test_session_with_spawned_provider(provider_launch_spec):
    """Test the built-in provider as a child process."""
    transport = StdioTransport(provider_launch_spec)

    async with ClientSession(transport, handshake_timeout=20.0) as session:
        assert transport.is_running
        tools = await session.list_tools()
        result = await session.call_tool("add", {"num1": 12345, "num2": 67890})
        invalid = await session.call_tool("add", {"num1": 1})

    assert [tool.name for tool in tools] == ["add", "subtract", "multiply", "divide"]
    assert result.text() == "80235"
    assert invalid.is_error is True
    assert not transport.is_running


@pytest.mark.asyncio
async def test_provider_exit_fails_session(provider_launch_spec):
    """Test that a provider dying mid-session closes the consumer side."""
    transport = StdioTransport(provider_launch_spec)
    session = ClientSession(transport, handshake_timeout=20.0)
    await session.connect()

    transport._process.kill()
    await transport._process.wait()

    with pytest.raises((ConnectionLostError, SessionNotReadyError)):
        await asyncio.wait_for(session.ping(), timeout=5.0)
    await session.disconnect()
    assert session.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_close_after_exit_is_noop():
    """Test that closing a transport whose child already exited is harmless."""
    transport = StdioTransport(ProcessLaunchSpec(command=sys.executable, args=["-c", "pass"]))
    await transport.open()
    await transport._process.wait()

    with pytest.raises(ConnectionLostError):
        await transport.receive()
    await transport.close()
    await transport.close()

    assert not transport.is_running


@pytest.mark.asyncio
async def test_stderr_is_not_protocol_data():
    """Test that diagnostics on stderr never reach the receive side."""
    script = (
        "import sys\n"
        "sys.stderr.write('not json at all\\n')\n"
        "sys.stderr.flush()\n"
        "sys.stdout.write('{\"jsonrpc\": \"2.0\", \"method\": \"notifications/tools/list_changed\"}\\n')\n"
        "sys.stdout.flush()\n"
    )
    transport = StdioTransport(ProcessLaunchSpec(command=sys.executable, args=["-c", script]))
    await transport.open()

    message = await asyncio.wait_for(transport.receive(), timeout=10.0)

    assert message.method == "notifications/tools/list_changed"
    await transport.close()


@pytest.mark.asyncio
async def test_missing_command():
    """Test that an unknown executable is reported as TransportError."""
    transport = StdioTransport(ProcessLaunchSpec(command="definitely-not-a-real-command-xyz"))

    with pytest.raises(TransportError):
        await transport.open()
