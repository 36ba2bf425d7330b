"""Data types for conversation messages."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class ToolCall:
    """A tool call requested by the model.

    Attributes:
        id: Identifier the model attached to the call
        name: Tool name
        arguments: Arguments chosen by the model
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class UserMessage:
    """A message from the user."""

    role: str = "user"
    content: str = ""
    timestamp: str = field(default_factory=_now)

    def __post_init__(self) -> None:
        """Validate role is always 'user'."""
        self.role = "user"


@dataclass
class SystemMessage:
    """A system prompt message."""

    role: str = "system"
    content: str = ""
    timestamp: str = field(default_factory=_now)

    def __post_init__(self) -> None:
        """Validate role is always 'system'."""
        self.role = "system"


@dataclass
class AssistantMessage:
    """A response from the model, possibly requesting tool calls."""

    role: str = "assistant"
    content: str = ""
    model: str = ""
    timestamp: str = field(default_factory=_now)
    tool_calls: list[ToolCall] | None = None

    def __post_init__(self) -> None:
        """Validate role is always 'assistant'."""
        self.role = "assistant"


@dataclass
class ToolMessage:
    """A tool result answering one of the assistant's tool calls."""

    role: str = "tool"
    tool_call_id: str = ""
    tool_name: str = ""
    content: str = ""
    is_error: bool = False
    timestamp: str = field(default_factory=_now)

    def __post_init__(self) -> None:
        """Validate role is always 'tool'."""
        self.role = "tool"


# Union type for all message types
Message = UserMessage | SystemMessage | AssistantMessage | ToolMessage
