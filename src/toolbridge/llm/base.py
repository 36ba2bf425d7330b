"""Model client contract and reply type."""

from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from toolbridge.conversation.types import Message, ToolCall


@dataclass
class ModelReply:
    """One complete answer from the model.

    Attributes:
        content: Text content (empty when the model only requests tools)
        tool_calls: Tool calls in the order the model emitted them
        model: Model that produced the reply
        prompt_tokens: Tokens in the prompt, when reported
        completion_tokens: Tokens generated, when reported
    """

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str = ""
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class ModelClient(Protocol):
    """Something that answers a conversation, optionally with tool calls."""

    model: str

    def ensure_credentials(self) -> None:
        """Raise MissingCredentialsError if the backend needs a key and has none."""
        ...

    async def chat(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply: ...
