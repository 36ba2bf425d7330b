"""Async Ollama model client.

Wraps ollama.AsyncClient. Chat always streams; ``chat`` collects the chunks
into a single ModelReply, including any tool calls the model emits.
"""

import logging
from typing import Any, AsyncIterator, Sequence

import ollama

from toolbridge.conversation.types import (
    AssistantMessage,
    Message,
    ToolCall,
    ToolMessage,
)
from toolbridge.llm.base import ModelReply

logger = logging.getLogger(__name__)


def _to_dict(chunk: Any) -> dict[str, Any]:
    if hasattr(chunk, "model_dump"):
        return chunk.model_dump()
    if isinstance(chunk, dict):
        return chunk
    return vars(chunk)


class OllamaModelClient:
    """Model client for an Ollama server.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        model: Model name used for every chat request
    """

    def __init__(
        self,
        host: str,
        model: str,
        api_key: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> None:
        self.host = host
        self.model = model
        self.options = options
        kwargs: dict[str, Any] = {}
        if api_key:
            kwargs["headers"] = {"Authorization": f"Bearer {api_key}"}
        self._client = ollama.AsyncClient(host=host, **kwargs)
        logger.info(f"OllamaModelClient initialized with host: {host}, model: {model}")

    def ensure_credentials(self) -> None:
        # A local Ollama server needs no key
        return None

    @staticmethod
    def build_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Convert conversation messages to Ollama's chat format."""
        result: list[dict[str, Any]] = []
        for message in messages:
            entry: dict[str, Any] = {"role": message.role, "content": message.content}
            if isinstance(message, AssistantMessage) and message.tool_calls:
                entry["tool_calls"] = [
                    {"function": {"name": call.name, "arguments": call.arguments}}
                    for call in message.tool_calls
                ]
            elif isinstance(message, ToolMessage):
                entry["tool_name"] = message.tool_name
            result.append(entry)
        return result

    async def chat_stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream chat responses from Ollama.

        Yields:
            dict: Response chunks. The final chunk has ``done`` set and
                  carries eval_count and prompt_eval_count.
        """
        try:
            logger.debug(f"Starting chat stream with model: {self.model}")
            logger.debug(f"Message count: {len(messages)}, tools: {len(tools or [])}")

            async for chunk in await self._client.chat(
                model=self.model,
                messages=messages,
                tools=tools or None,
                stream=True,
                options=self.options,
            ):
                yield _to_dict(chunk)

            logger.debug("Chat stream completed")
        except Exception as e:
            logger.error(f"Chat stream failed: {e}")
            raise

    async def chat(
        self,
        messages: Sequence[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> ModelReply:
        """Send the conversation and collect the complete reply."""
        content_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        reply = ModelReply(model=self.model)

        async for chunk in self.chat_stream(self.build_messages(messages), tools):
            message = chunk.get("message") or {}
            if message.get("content"):
                content_parts.append(message["content"])
            for raw_call in message.get("tool_calls") or []:
                function = raw_call.get("function") or {}
                # Ollama does not always assign ids; fall back to the position
                call_id = raw_call.get("id") or f"call_{len(tool_calls)}"
                tool_calls.append(
                    ToolCall(
                        id=call_id,
                        name=function.get("name", ""),
                        arguments=dict(function.get("arguments") or {}),
                    )
                )
            if chunk.get("done"):
                reply.model = chunk.get("model") or self.model
                reply.prompt_tokens = chunk.get("prompt_eval_count")
                reply.completion_tokens = chunk.get("eval_count")

        reply.content = "".join(content_parts)
        reply.tool_calls = tool_calls
        logger.info(
            f"Model reply: {len(reply.content)} chars, {len(tool_calls)} tool calls"
        )
        return reply
