"""Built-in tools and the default provider.

The default provider serves the arithmetic tools. It is what
``toolbridge serve`` runs and what the HTTP app uses when no server is
passed in.
"""

from toolbridge.config import ToolBridgeSettings
from toolbridge.server import ToolServer
from toolbridge.tools.arithmetic import register_arithmetic_tools


def build_default_server(settings: ToolBridgeSettings) -> ToolServer:
    """Create a provider with the built-in tools registered."""
    server = ToolServer(
        name=settings.server_name,
        version=settings.server_version,
        instructions=settings.server_instructions,
    )
    register_arithmetic_tools(server.registry)
    return server


__all__ = ["build_default_server", "register_arithmetic_tools"]
