"""Model client for OpenAI-compatible chat completion endpoints."""

import json
import logging
from typing import Any, Sequence

from openai import AsyncOpenAI

from toolbridge.conversation.types import (
    AssistantMessage,
    Message,
    ToolCall,
    ToolMessage,
)
from toolbridge.errors import MissingCredentialsError
from toolbridge.llm.base import ModelReply

logger = logging.getLogger(__name__)


class OpenAIModelClient:
    """Chat completions through ``openai.AsyncOpenAI``.

    The SDK client is built on first use, so a missing API key is reported
    by ``ensure_credentials`` instead of failing at construction.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None,
        base_url: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
    ) -> None:
        self.model = model
        self.base_url = base_url
        self._api_key = api_key
        self._timeout = timeout
        self._max_retries = max_retries
        self._client: AsyncOpenAI | None = None

    def ensure_credentials(self) -> None:
        if not self._api_key:
            raise MissingCredentialsError(
                "No API key configured for the model service "
                "(set TOOLBRIDGE_LLM_API_KEY or OPENAI_API_KEY)"
            )

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self.ensure_credentials()
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=self._timeout,
                max_retries=self._max_retries,
            )
        return self._client

    @staticmethod
    def build_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Convert conversation messages to the chat completions format."""
        result: list[dict[str, Any]] = []
        for message in messages:
            entry: dict[str, Any] = {"role": message.role}
            if isinstance(message, AssistantMessage) and message.tool_calls:
                entry["content"] = message.content or None
                entry["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in message.tool_calls
                ]
            elif isinstance(message, ToolMessage):
                entry["tool_call_id"] = message.tool_call_id
                entry["content"] = message.content
            else:
                entry["content"] = message.content
            result.append(entry)
        return result

    @staticmethod
    def parse_tool_call(raw_call: Any) -> ToolCall:
        arguments_text = raw_call.function.arguments or "{}"
        try:
            arguments = json.loads(arguments_text)
        except json.JSONDecodeError:
            logger.warning(
                f"Undecodable arguments for {raw_call.function.name}: {arguments_text!r}"
            )
            arguments = {}
        if not isinstance(arguments, dict):
            logger.warning(f"Arguments for {raw_call.function.name} are not an object")
            arguments = {}
        return ToolCall(id=raw_call.id, name=raw_call.function.name, arguments=arguments)

    async def chat(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply:
        params: dict[str, Any] = {
            "model": self.model,
            "messages": self.build_messages(messages),
        }
        if tools:
            params["tools"] = tools

        logger.debug(f"Chat completion with model {self.model}, {len(tools or [])} tools")
        try:
            completion = await self.client.chat.completions.create(**params)
        except Exception as e:
            logger.error(f"Chat completion failed: {e}")
            raise

        choice = completion.choices[0]
        reply = ModelReply(
            content=choice.message.content or "",
            tool_calls=[
                self.parse_tool_call(raw_call)
                for raw_call in choice.message.tool_calls or []
            ],
            model=completion.model or self.model,
        )
        if completion.usage is not None:
            reply.prompt_tokens = completion.usage.prompt_tokens
            reply.completion_tokens = completion.usage.completion_tokens
        logger.info(
            f"Model reply: {len(reply.content)} chars, {len(reply.tool_calls)} tool calls"
        )
        return reply
