"""Provider side of the protocol: connection handling and the serving loop.

A ToolServer owns the tool registry. Each consumer session gets its own
ServerConnection holding that session's handshake state and an outbox of
server-initiated messages; the registry is the only object connections
share.
"""

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from toolbridge.errors import ConnectionLostError, MalformedMessageError
from toolbridge.protocol import messages as rpc
from toolbridge.protocol import types
from toolbridge.protocol.messages import (
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    error_response,
)
from toolbridge.server.registry import ToolRegistry
from toolbridge.transports.base import Transport

logger = logging.getLogger(__name__)


class ServerConnection:
    """Provider-side state of one consumer session."""

    def __init__(self, server: "ToolServer", outbox_size: int = 100) -> None:
        self.server = server
        self.initialized = False
        self.closed = False
        self.client_info: types.Implementation | None = None
        self.protocol_version: str | None = None
        self.outbox: asyncio.Queue[JSONRPCMessage] = asyncio.Queue(maxsize=outbox_size)
        self._event_id = 0

    def next_event_id(self) -> int:
        """Sequence number for the next pushed event on this connection."""
        self._event_id += 1
        return self._event_id

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Queue a server-initiated notification for delivery."""
        if self.closed:
            return
        try:
            self.outbox.put_nowait(JSONRPCNotification(method=method, params=params))
        except asyncio.QueueFull:
            logger.warning(f"Outbox full, dropping notification {method}")

    def close(self) -> None:
        self.closed = True

    # ── Dispatch ──────────────────────────────────────────────────────────

    async def handle_message(self, message: JSONRPCMessage) -> JSONRPCMessage | None:
        """Handle one incoming message.

        Returns:
            The response for a request, None for anything else
        """
        if isinstance(message, JSONRPCRequest):
            return await self._handle_request(message)
        if isinstance(message, JSONRPCNotification):
            self._handle_notification(message)
            return None
        # responses to our own pings need no further handling
        logger.debug(f"Ignoring response from consumer: id={message.id}")
        return None

    async def _handle_request(self, request: JSONRPCRequest) -> JSONRPCMessage:
        method = request.method
        params = request.params or {}

        if method == types.INITIALIZE:
            return self._initialize(request.id, params)
        if method == types.PING:
            return JSONRPCResponse(id=request.id, result={})
        if method not in (types.TOOLS_LIST, types.TOOLS_CALL):
            return error_response(
                request.id, rpc.METHOD_NOT_FOUND, f"Method not found: {method}"
            )
        if not self.initialized:
            return error_response(
                request.id,
                rpc.SESSION_NOT_INITIALIZED,
                "Session not initialized; send initialize first",
            )

        if method == types.TOOLS_LIST:
            return self._list_tools(request.id)
        return await self._call_tool(request.id, params)

    def _handle_notification(self, notification: JSONRPCNotification) -> None:
        if notification.method == types.INITIALIZED:
            logger.debug("Consumer confirmed initialization")
        elif notification.method == types.CANCELLED:
            logger.info(f"Consumer cancelled a request: {notification.params}")
        else:
            logger.debug(f"Ignoring notification: {notification.method}")

    def _initialize(self, request_id: rpc.RequestId, params: dict[str, Any]) -> JSONRPCMessage:
        try:
            init = types.InitializeParams.model_validate(params)
        except ValidationError as e:
            return error_response(
                request_id, rpc.INVALID_PARAMS, f"Invalid initialize params: {e}"
            )

        if init.protocol_version in types.SUPPORTED_PROTOCOL_VERSIONS:
            self.protocol_version = init.protocol_version
        else:
            self.protocol_version = types.LATEST_PROTOCOL_VERSION
        self.client_info = init.client_info
        self.initialized = True
        logger.info(
            f"Initialized session for {init.client_info.name} "
            f"{init.client_info.version} (protocol {self.protocol_version})"
        )

        result = types.InitializeResult(
            protocol_version=self.protocol_version,
            capabilities=self.server.capabilities,
            server_info=self.server.info,
            instructions=self.server.instructions,
        )
        return JSONRPCResponse(id=request_id, result=result.to_wire())

    def _list_tools(self, request_id: rpc.RequestId) -> JSONRPCMessage:
        result = types.ListToolsResult(tools=self.server.registry.list_tools())
        return JSONRPCResponse(id=request_id, result=result.to_wire())

    async def _call_tool(self, request_id: rpc.RequestId, params: dict[str, Any]) -> JSONRPCMessage:
        try:
            call = types.ToolCallRequest.model_validate(params)
        except ValidationError as e:
            return error_response(
                request_id, rpc.INVALID_PARAMS, f"Invalid tools/call params: {e}"
            )

        logger.debug(f"Calling tool {call.name} with {call.arguments}")
        result = await self.server.registry.invoke(call.name, call.arguments)
        return JSONRPCResponse(id=request_id, result=result.to_wire())


class ToolServer:
    """A tool provider: a registry plus the identity it announces."""

    def __init__(
        self,
        name: str,
        version: str,
        registry: ToolRegistry | None = None,
        instructions: str | None = None,
    ) -> None:
        self.registry = registry if registry is not None else ToolRegistry()
        self.info = types.Implementation(name=name, version=version)
        self.instructions = instructions
        self.capabilities: dict[str, Any] = {"tools": {"listChanged": True}}
        self._connections: set[ServerConnection] = set()
        self.registry.add_listener(self._on_tool_registered)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def create_connection(self) -> ServerConnection:
        connection = ServerConnection(self)
        self._connections.add(connection)
        return connection

    def close_connection(self, connection: ServerConnection) -> None:
        connection.close()
        self._connections.discard(connection)

    def _on_tool_registered(self, descriptor: types.ToolDescriptor) -> None:
        for connection in self._connections:
            if connection.initialized:
                connection.notify(types.TOOLS_LIST_CHANGED)

    # ── Serving loop ──────────────────────────────────────────────────────

    async def serve(self, transport: Transport) -> None:
        """Serve one consumer over a transport until it disconnects.

        Each request runs in its own task so a slow tool does not hold up
        the others. Failing tools produce error results; malformed input is
        answered with a parse error. Neither ends the loop.
        """
        await transport.open()
        connection = self.create_connection()
        pump = asyncio.create_task(self._pump_outbox(connection, transport))
        in_flight: set[asyncio.Task] = set()

        try:
            while True:
                try:
                    message = await transport.receive()
                except MalformedMessageError as e:
                    logger.warning(f"Malformed message from consumer: {e}")
                    await self._send(transport, error_response(None, rpc.PARSE_ERROR, str(e)))
                    continue
                except ConnectionLostError:
                    logger.info("Consumer disconnected")
                    break

                task = asyncio.create_task(self._respond(connection, transport, message))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)
        finally:
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
            self.close_connection(connection)
            await transport.close()

    async def _respond(
        self,
        connection: ServerConnection,
        transport: Transport,
        message: JSONRPCMessage,
    ) -> None:
        try:
            response = await connection.handle_message(message)
        except Exception as e:
            logger.error(f"Unexpected error while handling message: {e}")
            request_id = message.id if isinstance(message, JSONRPCRequest) else None
            if request_id is None:
                return
            response = error_response(request_id, rpc.INTERNAL_ERROR, str(e))
        if response is not None:
            await self._send(transport, response)

    async def _pump_outbox(self, connection: ServerConnection, transport: Transport) -> None:
        while True:
            message = await connection.outbox.get()
            await self._send(transport, message)

    @staticmethod
    async def _send(transport: Transport, message: JSONRPCMessage) -> None:
        try:
            await transport.send(message)
        except ConnectionLostError as e:
            logger.info(f"Could not deliver {type(message).__name__}: {e}")


__all__ = ["ServerConnection", "ToolServer"]
