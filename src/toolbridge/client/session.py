"""Consumer-side protocol session.

A ClientSession owns one transport for its whole life and moves through
UNINITIALIZED → HANDSHAKING → READY → CLOSED. Requests are correlated with
their responses by JSON-RPC id; every pending request is resolved exactly
once, either by its response or by a ConnectionLostError when the channel
goes away.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

from toolbridge.errors import (
    ConnectionLostError,
    HandshakeError,
    MalformedMessageError,
    RemoteProtocolError,
    SessionNotReadyError,
    TransportError,
)
from toolbridge.protocol import messages as rpc
from toolbridge.protocol import types
from toolbridge.protocol.messages import (
    JSONRPCError,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    error_response,
)
from toolbridge.transports.base import Transport

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[JSONRPCNotification], None]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSED = "closed"


class ClientSession:
    """A protocol session with one tool provider over one transport.

    Attributes:
        server_info: Provider name and version, once ready
        server_capabilities: Capabilities the provider declared
        protocol_version: Negotiated protocol version
        instructions: Optional usage instructions sent by the provider
    """

    def __init__(
        self,
        transport: Transport,
        client_name: str = "toolbridge",
        client_version: str = "0.1.0",
        capabilities: dict[str, Any] | None = None,
        handshake_timeout: float = 30.0,
        on_notification: NotificationHandler | None = None,
    ) -> None:
        self.transport = transport
        self.client_info = types.Implementation(name=client_name, version=client_version)
        self.capabilities = capabilities or {}
        self.handshake_timeout = handshake_timeout
        self.on_notification = on_notification

        self.server_info: types.Implementation | None = None
        self.server_capabilities: dict[str, Any] = {}
        self.protocol_version: str | None = None
        self.instructions: str | None = None

        self._state = SessionState.UNINITIALIZED
        self._next_id = 0
        self._pending: dict[rpc.RequestId, asyncio.Future] = {}
        self._reader: asyncio.Task | None = None
        self._disconnected = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    def ensure_ready(self) -> None:
        """Raise SessionNotReadyError unless the session is READY."""
        if self._state is not SessionState.READY:
            raise SessionNotReadyError(f"Session is {self._state.value}, not ready")

    async def __aenter__(self) -> "ClientSession":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Open the transport and perform the initialize handshake.

        Raises:
            SessionNotReadyError: If the session was already connected or closed
            TransportError: If the transport cannot be opened
            HandshakeError: If the provider does not answer in time or answers
                with something other than a valid initialize result. The
                session is closed and cannot be reused.
        """
        if self._state is not SessionState.UNINITIALIZED:
            raise SessionNotReadyError(
                f"Cannot connect a session that is {self._state.value}"
            )

        self._state = SessionState.HANDSHAKING
        try:
            result = await asyncio.wait_for(
                self._handshake(), timeout=self.handshake_timeout
            )
        except Exception as e:
            await self.disconnect()
            if isinstance(e, (HandshakeError, TransportError)):
                raise
            if isinstance(e, asyncio.TimeoutError):
                raise HandshakeError(
                    f"Provider did not answer initialize within {self.handshake_timeout}s"
                ) from e
            raise HandshakeError(f"Handshake failed: {e}") from e

        self.server_info = result.server_info
        self.server_capabilities = result.capabilities
        self.protocol_version = result.protocol_version
        self.instructions = result.instructions
        self._state = SessionState.READY
        logger.info(
            f"Session ready with {result.server_info.name} {result.server_info.version} "
            f"(protocol {result.protocol_version})"
        )

    async def _handshake(self) -> types.InitializeResult:
        await self.transport.open()
        self._reader = asyncio.create_task(self._read_loop())

        params = types.InitializeParams(
            protocol_version=types.LATEST_PROTOCOL_VERSION,
            capabilities=self.capabilities,
            client_info=self.client_info,
        )
        raw = await self._request(types.INITIALIZE, params.to_wire())
        result = types.InitializeResult.model_validate(raw)
        if result.protocol_version not in types.SUPPORTED_PROTOCOL_VERSIONS:
            raise HandshakeError(
                f"Provider answered with unsupported protocol version "
                f"{result.protocol_version}"
            )
        await self._notify(types.INITIALIZED)
        return result

    async def disconnect(self) -> None:
        """Close the session and its transport. Safe to call more than once."""
        if self._disconnected:
            return
        self._disconnected = True
        self._state = SessionState.CLOSED

        self._fail_pending(ConnectionLostError("Session closed"))
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Session reader ended with an error: {e}")
        self._reader = None

        await self.transport.close()
        logger.info("Session closed")

    # ── Operations ────────────────────────────────────────────────────────

    async def ping(self) -> None:
        self.ensure_ready()
        await self._request(types.PING)

    async def list_tools(self) -> list[types.ToolDescriptor]:
        """Fetch every tool the provider offers, following pagination."""
        self.ensure_ready()
        tools: list[types.ToolDescriptor] = []
        cursor: str | None = None
        while True:
            params = {"cursor": cursor} if cursor else None
            page = types.ListToolsResult.model_validate(
                await self._request(types.TOOLS_LIST, params)
            )
            tools.extend(page.tools)
            cursor = page.next_cursor
            if not cursor:
                break
        logger.debug(f"Listed {len(tools)} tools")
        return tools

    async def call_tool(
        self, name: str, arguments: dict[str, Any] | None = None
    ) -> types.ToolCallResult:
        """Invoke a tool and wait for its result.

        Raises:
            SessionNotReadyError: If the session is not ready; nothing is sent
            ConnectionLostError: If the channel closes before the reply
            RemoteProtocolError: If the provider answers with a JSON-RPC error
        """
        self.ensure_ready()
        request = types.ToolCallRequest(name=name, arguments=arguments or {})
        raw = await self._request(types.TOOLS_CALL, request.to_wire())
        return types.ToolCallResult.model_validate(raw)

    # ── Correlation ───────────────────────────────────────────────────────

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self._next_id += 1
        request_id = self._next_id
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self.transport.send(
                JSONRPCRequest(id=request_id, method=method, params=params)
            )
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def _notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        await self.transport.send(JSONRPCNotification(method=method, params=params))

    def _resolve(self, message: JSONRPCResponse | JSONRPCError) -> None:
        future = self._pending.get(message.id) if message.id is not None else None
        if future is None:
            logger.warning(f"Dropping response for unknown request id {message.id}")
            return
        if future.done():
            logger.warning(f"Dropping duplicate response for request id {message.id}")
            return
        if isinstance(message, JSONRPCError):
            future.set_exception(
                RemoteProtocolError(
                    message.error.code, message.error.message, message.error.data
                )
            )
        else:
            future.set_result(message.result)

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)

    async def _read_loop(self) -> None:
        lost = ConnectionLostError("Connection to provider lost")
        try:
            while True:
                try:
                    message = await self.transport.receive()
                except MalformedMessageError as e:
                    logger.warning(f"Skipping malformed message from provider: {e}")
                    continue
                except ConnectionLostError as e:
                    logger.info(f"Connection to provider lost: {e}")
                    lost = ConnectionLostError(str(e))
                    return

                if isinstance(message, (JSONRPCResponse, JSONRPCError)):
                    self._resolve(message)
                elif isinstance(message, JSONRPCRequest):
                    await self._answer_server_request(message)
                else:
                    self._deliver_notification(message)
        except Exception as e:
            logger.error(f"Session reader stopped: {e}")
            lost = ConnectionLostError(f"Session reader stopped: {e}")
        finally:
            # no pending call may outlive the reader
            self._fail_pending(lost)
            self._state = SessionState.CLOSED

    def _deliver_notification(self, notification: JSONRPCNotification) -> None:
        logger.debug(f"Provider notification: {notification.method}")
        if self.on_notification is None:
            return
        try:
            self.on_notification(notification)
        except Exception as e:
            logger.error(f"Notification handler failed for {notification.method}: {e}")

    async def _answer_server_request(self, request: JSONRPCRequest) -> None:
        if request.method == types.PING:
            reply: rpc.JSONRPCMessage = JSONRPCResponse(id=request.id, result={})
        else:
            reply = error_response(
                request.id, rpc.METHOD_NOT_FOUND, f"Method not found: {request.method}"
            )
        try:
            await self.transport.send(reply)
        except (ConnectionLostError, TransportError) as e:
            logger.warning(f"Could not answer provider request {request.id}: {e}")
