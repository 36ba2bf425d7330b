"""Consumer side: protocol session, tool directory and invocation dispatcher."""

from toolbridge.client.directory import ToolDirectory
from toolbridge.client.dispatcher import InvocationDispatcher
from toolbridge.client.session import ClientSession, SessionState

__all__ = [
    "ClientSession",
    "InvocationDispatcher",
    "SessionState",
    "ToolDirectory",
]
