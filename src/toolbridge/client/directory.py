"""Tool discovery and translation into the model's function-calling format."""

import logging
from typing import Any

from toolbridge.client.session import ClientSession
from toolbridge.protocol.types import ToolDescriptor

logger = logging.getLogger(__name__)


class ToolDirectory:
    """The consumer's view of a provider's tools.

    Nothing is cached: the provider's tool set may change between turns, so
    callers discover again whenever they need a fresh list.
    """

    def __init__(self, session: ClientSession) -> None:
        self._session = session

    async def discover(self) -> list[ToolDescriptor]:
        """Fetch the provider's tool descriptors.

        Raises:
            SessionNotReadyError: If the session is not ready
        """
        tools = await self._session.list_tools()
        logger.info(f"Discovered {len(tools)} tools: {[tool.name for tool in tools]}")
        return tools

    @staticmethod
    def translate(descriptor: ToolDescriptor) -> dict[str, Any]:
        """Wrap a descriptor in the model-facing function format.

        The parameter schema is passed through untouched so the model sees
        exactly what the provider validates against. A missing description
        becomes an empty string; the model-facing format does not allow null.

        Returns:
            ``{"type": "function", "function": {"name", "description", "parameters"}}``
        """
        return {
            "type": "function",
            "function": {
                "name": descriptor.name,
                "description": descriptor.description or "",
                "parameters": descriptor.input_schema,
            },
        }

    async def discover_for_model(self) -> list[dict[str, Any]]:
        """Discover tools and translate each one."""
        return [self.translate(descriptor) for descriptor in await self.discover()]
