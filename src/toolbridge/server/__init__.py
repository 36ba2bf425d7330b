"""Provider side: tool registry, connection handling and serving loop."""

from toolbridge.server.connections import ConnectionStore
from toolbridge.server.registry import RegisteredTool, ToolRegistry
from toolbridge.server.server import ServerConnection, ToolServer

__all__ = [
    "ConnectionStore",
    "RegisteredTool",
    "ServerConnection",
    "ToolRegistry",
    "ToolServer",
]
