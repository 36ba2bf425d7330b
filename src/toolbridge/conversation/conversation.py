"""In-memory conversation history."""

import logging

from toolbridge.conversation.types import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolMessage,
)

logger = logging.getLogger(__name__)


class Conversation:
    """Ordered, append-only message history of one conversation.

    Tool messages are only accepted as answers to a tool call of the most
    recent assistant message, and each call is answered once.
    """

    def __init__(
        self,
        system_prompt: str | None = None,
        messages: list[Message] | None = None,
    ) -> None:
        self.messages: list[Message] = []
        if system_prompt:
            self.messages.append(SystemMessage(content=system_prompt))
        for message in messages or []:
            self.add_message(message)

    def __len__(self) -> int:
        return len(self.messages)

    def add_message(self, message: Message) -> None:
        """Append a message.

        Raises:
            ValueError: If a tool message does not answer an open tool call
        """
        if isinstance(message, ToolMessage):
            open_calls = self.open_tool_calls()
            if message.tool_call_id not in open_calls:
                raise ValueError(
                    f"Tool message references unknown or answered call id "
                    f"'{message.tool_call_id}'"
                )
        self.messages.append(message)

    def open_tool_calls(self) -> set[str]:
        """Ids of the latest assistant tool calls that have no answer yet."""
        answered: set[str] = set()
        for message in reversed(self.messages):
            if isinstance(message, ToolMessage):
                answered.add(message.tool_call_id)
            elif isinstance(message, AssistantMessage):
                requested = {call.id for call in message.tool_calls or []}
                return requested - answered
            else:
                break
        return set()
