"""Conversation loop: model query, tool execution and the follow-up query.

One turn allows a single round of tool use. When the model asks for tools,
every requested call is executed in order, the results are appended to the
conversation and the model is queried once more without tools. Whatever
that second reply says is the answer, even if it asks for more tools.
"""

import logging
from dataclasses import dataclass, field

from toolbridge.client.directory import ToolDirectory
from toolbridge.client.dispatcher import InvocationDispatcher
from toolbridge.client.session import ClientSession
from toolbridge.conversation.conversation import Conversation
from toolbridge.conversation.types import (
    AssistantMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from toolbridge.errors import ToolBridgeError
from toolbridge.llm.base import ModelClient, ModelReply
from toolbridge.protocol.types import ToolCallResult

logger = logging.getLogger(__name__)


@dataclass
class ExecutedToolCall:
    """A tool call made during a turn, with what the provider returned."""

    call: ToolCall
    content: str
    is_error: bool = False


@dataclass
class TurnResult:
    """Outcome of one conversation turn.

    Attributes:
        answer: Text of the final model reply
        tool_calls: Tool calls executed during the turn, in order
        model_queries: Number of model queries made (1 or 2)
    """

    answer: str
    tool_calls: list[ExecutedToolCall] = field(default_factory=list)
    model_queries: int = 0


class ConversationController:
    """Drives turns between the user, the model and the tool provider."""

    def __init__(self, model_client: ModelClient, session: ClientSession) -> None:
        self.model_client = model_client
        self.session = session
        self.directory = ToolDirectory(session)

    async def run_turn(self, conversation: Conversation, user_input: str) -> TurnResult:
        """Process one user message and return the final answer.

        Raises:
            MissingCredentialsError: Before any model call, if the backend
                needs a key and none is configured
            SessionNotReadyError: If the provider session is not ready
            ConnectionLostError: If the provider goes away mid-turn. Tool calls
                left unanswered are closed with error tool messages, so the
                conversation stays valid for a later turn.
        """
        self.model_client.ensure_credentials()
        conversation.add_message(UserMessage(content=user_input))

        tools = await self.directory.discover_for_model()
        reply = await self.model_client.chat(conversation.messages, tools=tools)
        result = TurnResult(answer="", model_queries=1)

        if not reply.tool_calls:
            self._append_reply(conversation, reply)
            result.answer = reply.content
            return result

        self._append_reply(conversation, reply)
        dispatcher = InvocationDispatcher(self.session)
        for call in reply.tool_calls:
            logger.info(f"Calling tool {call.name} with {call.arguments}")
            try:
                tool_result = await dispatcher.call(
                    call.name, call.arguments, call_id=call.id
                )
            except ToolBridgeError as e:
                self._close_open_calls(
                    conversation, reply.tool_calls, f"Tool call aborted: {e}"
                )
                raise
            content = tool_result.serialize_content()
            conversation.add_message(
                ToolMessage(
                    tool_call_id=call.id,
                    tool_name=call.name,
                    content=content,
                    is_error=tool_result.is_error,
                )
            )
            result.tool_calls.append(
                ExecutedToolCall(call=call, content=content, is_error=tool_result.is_error)
            )

        final = await self.model_client.chat(conversation.messages, tools=None)
        result.model_queries = 2
        if final.tool_calls:
            logger.warning(
                f"Model requested {len(final.tool_calls)} more tool calls after the "
                f"tool round; only one round is allowed per turn, ignoring them"
            )
        conversation.add_message(AssistantMessage(content=final.content, model=final.model))
        result.answer = final.content
        return result

    @staticmethod
    def _close_open_calls(
        conversation: Conversation, calls: list[ToolCall], reason: str
    ) -> None:
        open_calls = conversation.open_tool_calls()
        content = ToolCallResult.error(reason).serialize_content()
        for call in calls:
            if call.id in open_calls:
                conversation.add_message(
                    ToolMessage(
                        tool_call_id=call.id,
                        tool_name=call.name,
                        content=content,
                        is_error=True,
                    )
                )
                open_calls.discard(call.id)

    @staticmethod
    def _append_reply(conversation: Conversation, reply: ModelReply) -> None:
        conversation.add_message(
            AssistantMessage(
                content=reply.content,
                model=reply.model,
                tool_calls=list(reply.tool_calls) or None,
            )
        )
