"""Unit tests for the consumer-side invocation dispatcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from toolbridge.client import ClientSession, InvocationDispatcher
from toolbridge.errors import DuplicateCallError, RemoteProtocolError, SessionNotReadyError
from toolbridge.protocol.types import ToolCallResult
from toolbridge.transports import create_memory_transport_pair


@pytest.mark.asyncio
async def test_call_add(served_session):
    """Test invoking a real tool through the dispatcher."""
    dispatcher = InvocationDispatcher(served_session)

    result = await dispatcher.call("add", {"num1": 12345, "num2": 67890}, call_id="call_0")

    assert result.text() == "80235"
    assert dispatcher.result_for("call_0") is result
    assert list(dispatcher.results) == ["call_0"]


@pytest.mark.asyncio
async def test_invalid_arguments_come_back_as_error_result(served_session):
    """Test that a missing field is reported, not raised."""
    dispatcher = InvocationDispatcher(served_session)

    result = await dispatcher.call("add", {"num1": 1}, call_id="call_0")

    assert result.is_error is True
    assert "num2" in result.text()


@pytest.mark.asyncio
async def test_duplicate_call_id_rejected(served_session):
    """Test that a call id can only be used once per dispatcher."""
    dispatcher = InvocationDispatcher(served_session)
    await dispatcher.call("add", {"num1": 1, "num2": 1}, call_id="call_0")

    with pytest.raises(DuplicateCallError):
        await dispatcher.call("add", {"num1": 2, "num2": 2}, call_id="call_0")


@pytest.mark.asyncio
async def test_not_ready_sends_nothing():
    """Test that nothing reaches the transport when the session is not ready."""
    client_end, _ = create_memory_transport_pair()
    dispatcher = InvocationDispatcher(ClientSession(client_end))

    with pytest.raises(SessionNotReadyError):
        await dispatcher.call("add", {"num1": 1, "num2": 2}, call_id="call_0")

    assert client_end.sent == []
    assert dispatcher.results == {}


@pytest.mark.asyncio
async def test_protocol_error_becomes_error_result():
    """Test that a JSON-RPC error from the provider is shown to the model."""
    session = MagicMock(spec=ClientSession)
    session.call_tool = AsyncMock(
        side_effect=RemoteProtocolError(-32602, "Invalid tools/call params")
    )
    dispatcher = InvocationDispatcher(session)

    result = await dispatcher.call("add", {}, call_id="call_7")

    assert isinstance(result, ToolCallResult)
    assert result.is_error is True
    assert "Invalid tools/call params" in result.text()
    assert dispatcher.result_for("call_7") is result
