"""Exception types raised by toolbridge.

Transport and session failures propagate to the caller of the failing
operation. Provider-side tool failures (unknown tool, invalid arguments,
handler crash) are turned into error results and never cross the protocol
boundary as exceptions.
"""

from typing import Any


class ToolBridgeError(Exception):
    """Base class for all toolbridge errors."""


class TransportError(ToolBridgeError):
    """Raised when a transport cannot be opened or used."""


class ConnectionLostError(ToolBridgeError):
    """Raised when the channel closes while a call is waiting for its reply."""


class SessionInvalidError(ConnectionLostError):
    """Raised when the HTTP session id is missing or no longer known to the server."""


class MalformedMessageError(ToolBridgeError):
    """Raised when incoming data is not a valid JSON-RPC message."""


class HandshakeError(ToolBridgeError):
    """Raised when the initialize handshake fails. The session is closed."""


class SessionNotReadyError(ToolBridgeError):
    """Raised when an operation needs a ready session and the session is not ready."""


class RemoteProtocolError(ToolBridgeError):
    """A JSON-RPC error response received from the other side."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.message = message
        self.data = data


class DuplicateToolNameError(ToolBridgeError):
    """Raised when registering a tool under a name that is already taken."""


class UnknownToolError(ToolBridgeError):
    """No tool with the requested name is registered."""


class SchemaValidationError(ToolBridgeError):
    """Tool arguments do not conform to the tool's parameter schema."""


class HandlerError(ToolBridgeError):
    """A tool handler raised while executing."""


class DuplicateCallError(ToolBridgeError):
    """Raised when a call identifier is reused within one conversation turn."""


class MissingCredentialsError(ToolBridgeError):
    """Raised before the first model call when no API key is configured."""
