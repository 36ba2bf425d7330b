"""The transport contract shared by every channel variant."""

from typing import Protocol, runtime_checkable

from toolbridge.protocol.messages import JSONRPCMessage


@runtime_checkable
class Transport(Protocol):
    """Moves JSON-RPC messages between two endpoints.

    Layers above a transport never learn which variant they talk through.
    ``receive()`` suspends until the next message arrives and raises
    ConnectionLostError once the channel is closed.
    """

    async def open(self) -> None: ...

    async def send(self, message: JSONRPCMessage) -> None: ...

    async def receive(self) -> JSONRPCMessage: ...

    async def close(self) -> None: ...
