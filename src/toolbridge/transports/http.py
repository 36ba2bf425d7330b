"""Streamable HTTP transport (consumer end).

All traffic goes to a single endpoint URL:

- every outbound message is POSTed; the reply is either empty (202), one
  JSON message, or an SSE stream of messages,
- the server hands out a session id on the handshake response, which is
  echoed on every later request via the ``Mcp-Session-Id`` header,
- a GET on the same URL holds an SSE stream open for server-initiated
  messages; it is reconnected automatically when it drops,
- DELETE ends the server-side session.
"""

import asyncio
import logging

import httpx

from toolbridge.errors import (
    ConnectionLostError,
    MalformedMessageError,
    SessionInvalidError,
    TransportError,
)
from toolbridge.protocol.messages import JSONRPCMessage, parse_message
from toolbridge.transports.sse import iter_sse_events

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
LAST_EVENT_ID_HEADER = "Last-Event-ID"

_CLOSED = object()


class StreamableHTTPTransport:
    """Consumer-side transport over a single streamable HTTP endpoint."""

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        listen: bool = True,
        reconnect_delay: float = 1.0,
        max_reconnect_attempts: int = 5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport. No connection is made until open().

        Args:
            url: Endpoint URL (e.g. "http://localhost:3000/mcp")
            headers: Extra headers sent with every request
            timeout: Timeout in seconds for each POST/DELETE
            listen: Whether to hold a GET stream open for server messages
            reconnect_delay: Base delay between stream reconnects (linear backoff)
            max_reconnect_attempts: Consecutive failed reconnects before giving up
            client: Optional preconfigured httpx client (not closed by us)
        """
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout
        self.listen = listen
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self._client = client
        self._owns_client = client is None
        self._session_id: str | None = None
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._listener: asyncio.Task | None = None
        self._closed = False

    @property
    def session_id(self) -> str | None:
        """Session id issued by the server, once the handshake response arrived."""
        return self._session_id

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        self._closed = False
        logger.debug(f"HTTP transport ready for {self.url}")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        if self._client is not None and self._session_id is not None:
            try:
                await self._client.delete(self.url, headers=self._request_headers())
            except httpx.HTTPError as e:
                logger.debug(f"Failed to end HTTP session {self._session_id}: {e}")

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

        self._inbox.put_nowait(_CLOSED)
        logger.debug(f"HTTP transport for {self.url} closed")

    # ── Messages ──────────────────────────────────────────────────────────

    async def send(self, message: JSONRPCMessage) -> None:
        if self._closed or self._client is None:
            raise ConnectionLostError("HTTP transport is closed")

        headers = self._request_headers()
        headers["Accept"] = "application/json, text/event-stream"
        headers["Content-Type"] = "application/json"

        try:
            async with self._client.stream(
                "POST", self.url, content=message.to_json(), headers=headers
            ) as response:
                await self._handle_post_response(response)
        except httpx.TransportError as e:
            raise ConnectionLostError(f"HTTP request to {self.url} failed: {e}") from e

    async def receive(self) -> JSONRPCMessage:
        item = await self._inbox.get()
        if item is _CLOSED:
            self._inbox.put_nowait(_CLOSED)
            raise ConnectionLostError("HTTP transport is closed")
        return item

    def _request_headers(self) -> dict[str, str]:
        headers = dict(self.headers)
        if self._session_id is not None:
            headers[SESSION_HEADER] = self._session_id
        return headers

    async def _handle_post_response(self, response: httpx.Response) -> None:
        if self._session_id is not None and response.status_code in (400, 404):
            await response.aread()
            raise SessionInvalidError(
                f"Server rejected session {self._session_id} "
                f"(HTTP {response.status_code})"
            )

        issued = response.headers.get(SESSION_HEADER)
        if issued and self._session_id is None:
            self._session_id = issued
            logger.info(f"HTTP session established: {issued}")
            if self.listen:
                self._listener = asyncio.create_task(self._listen())

        if response.status_code == 202:
            await response.aread()
            return

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("text/event-stream"):
            async for event in iter_sse_events(response.aiter_lines()):
                await self._enqueue(event.data)
            return

        body = await response.aread()
        if content_type.startswith("application/json") and body:
            # error statuses may still carry a JSON-RPC error for the caller
            try:
                await self._inbox.put(parse_message(body))
                return
            except MalformedMessageError:
                if response.is_success:
                    raise
        if not response.is_success:
            raise TransportError(
                f"Unexpected HTTP {response.status_code} from {self.url}"
            )

    async def _enqueue(self, data: str) -> None:
        try:
            message = parse_message(data)
        except MalformedMessageError as e:
            logger.warning(f"Dropping malformed event from {self.url}: {e}")
            return
        await self._inbox.put(message)

    # ── Server-initiated stream ───────────────────────────────────────────

    async def _listen(self) -> None:
        attempts = 0
        last_event_id: str | None = None

        while not self._closed and self._client is not None:
            headers = self._request_headers()
            headers["Accept"] = "text/event-stream"
            if last_event_id is not None:
                headers[LAST_EVENT_ID_HEADER] = last_event_id

            try:
                async with self._client.stream(
                    "GET",
                    self.url,
                    headers=headers,
                    timeout=httpx.Timeout(self.timeout, read=None),
                ) as response:
                    if response.status_code == 405:
                        logger.debug(f"{self.url} offers no server stream")
                        return
                    if response.status_code == 404:
                        logger.warning(
                            f"Server stream rejected session {self._session_id}; "
                            "closing channel"
                        )
                        self._inbox.put_nowait(_CLOSED)
                        return
                    response.raise_for_status()

                    attempts = 0
                    logger.debug(f"Server stream open for session {self._session_id}")
                    async for event in iter_sse_events(response.aiter_lines()):
                        if event.id is not None:
                            last_event_id = event.id
                        await self._enqueue(event.data)
            except httpx.HTTPError as e:
                logger.warning(f"Server stream for {self.url} dropped: {e}")

            if self._closed:
                return
            attempts += 1
            if attempts > self.max_reconnect_attempts:
                logger.error(
                    f"Giving up on server stream after {self.max_reconnect_attempts} "
                    "reconnect attempts"
                )
                return
            await asyncio.sleep(self.reconnect_delay * attempts)
