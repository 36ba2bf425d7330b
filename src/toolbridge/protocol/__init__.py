"""Wire protocol: JSON-RPC envelopes and the payloads they carry."""

from toolbridge.protocol.messages import (
    JSONRPCError,
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    error_response,
    parse_message,
)
from toolbridge.protocol.types import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    Implementation,
    InitializeParams,
    InitializeResult,
    ListToolsResult,
    ToolCallRequest,
    ToolCallResult,
    ToolDescriptor,
    text_content,
)

__all__ = [
    # Envelopes
    "JSONRPCError",
    "JSONRPCMessage",
    "JSONRPCNotification",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "error_response",
    "parse_message",
    # Payloads
    "LATEST_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "Implementation",
    "InitializeParams",
    "InitializeResult",
    "ListToolsResult",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDescriptor",
    "text_content",
]
