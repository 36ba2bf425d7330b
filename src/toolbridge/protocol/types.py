"""Payload models carried inside JSON-RPC messages.

Field names are snake_case in Python and camelCase on the wire.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LATEST_PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2024-11-05")

# Method names
INITIALIZE = "initialize"
INITIALIZED = "notifications/initialized"
PING = "ping"
TOOLS_LIST = "tools/list"
TOOLS_CALL = "tools/call"
TOOLS_LIST_CHANGED = "notifications/tools/list_changed"
CANCELLED = "notifications/cancelled"


class WireModel(BaseModel):
    """Base for payloads: camelCase aliases, unknown fields kept."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump with wire aliases and without unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Implementation(WireModel):
    """Name and version of a client or server."""

    name: str
    version: str


class InitializeParams(WireModel):
    """Parameters of the initialize request."""

    protocol_version: str
    capabilities: dict[str, Any] = Field(default_factory=dict)
    client_info: Implementation


class InitializeResult(WireModel):
    """Result of the initialize request."""

    protocol_version: str
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: Implementation
    instructions: str | None = None


class ToolDescriptor(WireModel):
    """A tool as published by a provider.

    Attributes:
        name: Unique name within the provider
        description: Human-readable description; may be absent on the wire
        input_schema: JSON schema of the tool's arguments
    """

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    model_config = ConfigDict(frozen=True)


class ListToolsParams(WireModel):
    """Parameters of tools/list."""

    cursor: str | None = None


class ListToolsResult(WireModel):
    """Result of tools/list."""

    tools: list[ToolDescriptor] = Field(default_factory=list)
    next_cursor: str | None = None


class ToolCallRequest(WireModel):
    """Parameters of tools/call.

    ``call_id`` is the identifier the model attached to its tool call. It is
    kept on the consumer side for correlation and never sent on the wire.
    """

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    call_id: str | None = Field(default=None, exclude=True)


class ToolCallResult(WireModel):
    """Result of tools/call.

    Content blocks are opaque dicts with at least a ``type`` key, passed
    through unchanged between provider and model.
    """

    content: list[dict[str, Any]] = Field(default_factory=list)
    is_error: bool = False

    @classmethod
    def from_text(cls, text: str, is_error: bool = False) -> "ToolCallResult":
        """Build a result holding a single text block."""
        return cls(content=[text_content(text)], is_error=is_error)

    @classmethod
    def error(cls, message: str) -> "ToolCallResult":
        """Build an error result describing what went wrong."""
        return cls.from_text(message, is_error=True)

    def text(self) -> str:
        """Concatenate all text blocks, one per line."""
        return "\n".join(
            block.get("text", "") for block in self.content if block.get("type") == "text"
        )

    def serialize_content(self) -> str:
        """Serialize the content blocks for a tool-role model message."""
        return json.dumps(self.content, ensure_ascii=False)


def text_content(text: str) -> dict[str, Any]:
    """Build a text content block."""
    return {"type": "text", "text": text}
