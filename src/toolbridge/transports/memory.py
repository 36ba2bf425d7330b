"""In-process transport pair, used for embedding a provider and in tests."""

import asyncio
import logging

from toolbridge.errors import ConnectionLostError
from toolbridge.protocol.messages import JSONRPCMessage

logger = logging.getLogger(__name__)

_CLOSED = object()


class MemoryTransport:
    """One end of an in-memory channel.

    Messages sent on one end are received on the other. Closing either end
    closes the channel for both.
    """

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._peer: "MemoryTransport | None" = None
        self._closed = False
        self.sent: list[JSONRPCMessage] = []

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self._peer is None:
            raise ConnectionLostError(f"{self.name} transport has no peer")

    async def send(self, message: JSONRPCMessage) -> None:
        if self._closed or self._peer is None or self._peer._closed:
            raise ConnectionLostError(f"{self.name} transport is closed")
        self.sent.append(message)
        await self._peer._inbox.put(message)

    async def receive(self) -> JSONRPCMessage:
        item = await self._inbox.get()
        if item is _CLOSED:
            # keep the marker so every later receive fails the same way
            self._inbox.put_nowait(_CLOSED)
            raise ConnectionLostError(f"{self.name} transport is closed")
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._inbox.put_nowait(_CLOSED)
        if self._peer is not None and not self._peer._closed:
            self._peer._closed = True
            self._peer._inbox.put_nowait(_CLOSED)
        logger.debug(f"Closed {self.name} transport")


def create_memory_transport_pair() -> tuple[MemoryTransport, MemoryTransport]:
    """Create two connected transports: (consumer end, provider end)."""
    client = MemoryTransport(name="client")
    server = MemoryTransport(name="server")
    client._peer = server
    server._peer = client
    return client, server
