"""toolbridge: connect LLM conversations to tool providers.

This package provides the provider side (tool registry, stdio and streamable
HTTP serving), the consumer side (session, tool directory, invocation
dispatcher) and a conversation loop that lets a model call the provider's
tools.
"""

__version__ = "0.1.0"

from toolbridge.app import create_app  # noqa: E402
from toolbridge.client import ClientSession, InvocationDispatcher, ToolDirectory  # noqa: E402
from toolbridge.controller import ConversationController  # noqa: E402
from toolbridge.conversation import Conversation  # noqa: E402
from toolbridge.server import ToolRegistry, ToolServer  # noqa: E402

__all__ = [
    "ClientSession",
    "Conversation",
    "ConversationController",
    "InvocationDispatcher",
    "ToolDirectory",
    "ToolRegistry",
    "ToolServer",
    "create_app",
    "__version__",
]
