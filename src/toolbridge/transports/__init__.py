"""Transports moving JSON-RPC messages between consumer and provider.

Every variant satisfies the same Transport contract (open, send, receive,
close), so sessions never depend on the kind of channel they use.
"""

from toolbridge.config import ToolBridgeSettings
from toolbridge.transports.base import Transport
from toolbridge.transports.http import SESSION_HEADER, StreamableHTTPTransport
from toolbridge.transports.memory import MemoryTransport, create_memory_transport_pair
from toolbridge.transports.stdio import (
    ProcessLaunchSpec,
    StdioServerTransport,
    StdioTransport,
)


def create_transport(
    target: ProcessLaunchSpec | str,
    settings: ToolBridgeSettings | None = None,
) -> Transport:
    """Build the transport variant matching the target.

    Args:
        target: A process launch spec (process pipe) or an endpoint URL (HTTP)
        settings: Optional settings for timeouts and reconnection

    Returns:
        An unopened transport
    """
    settings = settings or ToolBridgeSettings()
    if isinstance(target, ProcessLaunchSpec):
        return StdioTransport(target)
    return StreamableHTTPTransport(
        target,
        timeout=settings.request_timeout,
        reconnect_delay=settings.stream_reconnect_delay,
        max_reconnect_attempts=settings.stream_max_reconnects,
    )


__all__ = [
    "MemoryTransport",
    "ProcessLaunchSpec",
    "SESSION_HEADER",
    "StdioServerTransport",
    "StdioTransport",
    "StreamableHTTPTransport",
    "Transport",
    "create_memory_transport_pair",
    "create_transport",
]
