"""Unit tests for the conversation loop controller.

The model is scripted; the provider is the real built-in one, served over
an in-memory channel.
"""

import json

import pytest

from toolbridge.controller import ConversationController
from toolbridge.conversation import (
    AssistantMessage,
    Conversation,
    ToolCall,
    ToolMessage,
    UserMessage,
)
from toolbridge.errors import MissingCredentialsError, SessionNotReadyError
from toolbridge.llm import ModelReply, OpenAIModelClient


class ScriptedModel:
    """Returns prepared replies and records what it was asked."""

    def __init__(self, *replies):
        self.model = "scripted"
        self.replies = list(replies)
        self.calls = []

    def ensure_credentials(self):
        return None

    async def chat(self, messages, tools=None):
        self.calls.append({"messages": list(messages), "tools": tools})
        return self.replies.pop(0)


@pytest.mark.asyncio
async def test_turn_with_tool_call(served_session):
    """Test that 12345 + 67890 is answered using the add tool."""
    model = ScriptedModel(
        ModelReply(
            tool_calls=[
                ToolCall(id="call_0", name="add", arguments={"num1": 12345, "num2": 67890})
            ]
        ),
        ModelReply(content="12345 + 67890 = 80235"),
    )
    controller = ConversationController(model, served_session)
    conversation = Conversation(system_prompt="You can use tools.")

    result = await controller.run_turn(conversation, "What is 12345 + 67890?")

    assert result.answer == "12345 + 67890 = 80235"
    assert result.model_queries == 2
    assert len(result.tool_calls) == 1
    assert json.loads(result.tool_calls[0].content) == [{"type": "text", "text": "80235"}]

    first, second = model.calls
    assert {t["function"]["name"] for t in first["tools"]} == {
        "add",
        "subtract",
        "multiply",
        "divide",
    }
    assert second["tools"] is None

    tool_message = second["messages"][-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.tool_call_id == "call_0"
    assert tool_message.tool_name == "add"
    assert "80235" in tool_message.content

    roles = [message.role for message in conversation.messages]
    assert roles == ["system", "user", "assistant", "tool", "assistant"]


@pytest.mark.asyncio
async def test_turn_without_tool_call(served_session):
    """Test that a plain answer takes exactly one model query."""
    model = ScriptedModel(ModelReply(content="Hello!"))
    controller = ConversationController(model, served_session)
    conversation = Conversation()

    result = await controller.run_turn(conversation, "Hello")

    assert result.answer == "Hello!"
    assert result.model_queries == 1
    assert result.tool_calls == []
    assert len(model.calls) == 1
    assert isinstance(conversation.messages[0], UserMessage)
    assert isinstance(conversation.messages[-1], AssistantMessage)


@pytest.mark.asyncio
async def test_multiple_calls_run_in_order(served_session):
    """Test that every requested call runs, in the order the model gave."""
    model = ScriptedModel(
        ModelReply(
            tool_calls=[
                ToolCall(id="a", name="multiply", arguments={"num1": 6, "num2": 7}),
                ToolCall(id="b", name="subtract", arguments={"num1": 10, "num2": 4}),
            ]
        ),
        ModelReply(content="42 and 6"),
    )
    controller = ConversationController(model, served_session)

    result = await controller.run_turn(Conversation(), "Compute")

    assert [call.call.id for call in result.tool_calls] == ["a", "b"]
    assert [json.loads(call.content)[0]["text"] for call in result.tool_calls] == [
        "42",
        "6",
    ]


@pytest.mark.asyncio
async def test_tool_error_is_shown_to_model(served_session):
    """Test that a failing tool does not end the turn."""
    model = ScriptedModel(
        ModelReply(
            tool_calls=[ToolCall(id="call_0", name="divide", arguments={"num1": 1, "num2": 0})]
        ),
        ModelReply(content="Cannot divide by zero."),
    )
    controller = ConversationController(model, served_session)

    result = await controller.run_turn(Conversation(), "1 / 0?")

    assert result.answer == "Cannot divide by zero."
    assert result.tool_calls[0].is_error is True
    tool_message = model.calls[1]["messages"][-1]
    assert tool_message.is_error is True
    assert "division by zero" in tool_message.content


@pytest.mark.asyncio
async def test_single_tool_round(served_session):
    """Test that tool calls in the follow-up reply are not executed."""
    model = ScriptedModel(
        ModelReply(tool_calls=[ToolCall(id="c0", name="add", arguments={"num1": 1, "num2": 1})]),
        ModelReply(
            content="Partial answer",
            tool_calls=[ToolCall(id="c1", name="add", arguments={"num1": 2, "num2": 2})],
        ),
    )
    controller = ConversationController(model, served_session)
    conversation = Conversation()

    result = await controller.run_turn(conversation, "Keep adding")

    assert result.answer == "Partial answer"
    assert result.model_queries == 2
    assert len(result.tool_calls) == 1
    assert conversation.messages[-1].tool_calls is None


@pytest.mark.asyncio
async def test_missing_credentials_before_model_call(served_session):
    """Test that a missing API key stops the turn before any model call."""
    model = OpenAIModelClient(model="deepseek-chat", api_key=None)
    controller = ConversationController(model, served_session)
    conversation = Conversation()

    with pytest.raises(MissingCredentialsError):
        await controller.run_turn(conversation, "Hello")

    assert model._client is None
    assert len(conversation) == 0


@pytest.mark.asyncio
async def test_lost_provider_closes_open_tool_calls(served_session):
    """Test that calls left unanswered by a lost provider get error tool messages."""

    class DisconnectingModel(ScriptedModel):
        async def chat(self, messages, tools=None):
            reply = await super().chat(messages, tools)
            await served_session.disconnect()
            return reply

    model = DisconnectingModel(
        ModelReply(
            tool_calls=[
                ToolCall(id="call_0", name="add", arguments={"num1": 1, "num2": 2}),
                ToolCall(id="call_1", name="divide", arguments={"num1": 1, "num2": 2}),
            ]
        )
    )
    controller = ConversationController(model, served_session)
    conversation = Conversation()

    with pytest.raises(SessionNotReadyError):
        await controller.run_turn(conversation, "Add and divide")

    assert conversation.open_tool_calls() == set()
    answers = conversation.messages[-2:]
    assert [message.tool_call_id for message in answers] == ["call_0", "call_1"]
    assert all(isinstance(message, ToolMessage) and message.is_error for message in answers)
    assert len(model.calls) == 1
