"""Consumer-side tool invocation, scoped to one conversation turn."""

import logging
from typing import Any

from toolbridge.client.session import ClientSession
from toolbridge.errors import DuplicateCallError, RemoteProtocolError
from toolbridge.protocol.types import ToolCallRequest, ToolCallResult

logger = logging.getLogger(__name__)


class InvocationDispatcher:
    """Sends tool calls and keeps their results by call identifier.

    Call identifiers are supplied by the model. Each one may be used once
    per dispatcher; a new dispatcher is created for every turn.
    """

    def __init__(self, session: ClientSession) -> None:
        self._session = session
        self._in_flight: set[str] = set()
        self._results: dict[str, ToolCallResult] = {}

    @property
    def results(self) -> dict[str, ToolCallResult]:
        """Completed results, keyed by call identifier."""
        return dict(self._results)

    def result_for(self, call_id: str) -> ToolCallResult | None:
        return self._results.get(call_id)

    async def call(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        call_id: str | None = None,
    ) -> ToolCallResult:
        """Invoke a tool and wait for its result.

        A JSON-RPC error from the provider becomes an error result, so the
        model gets to see it. No timeout is imposed here.

        Args:
            name: Tool name
            arguments: Tool arguments
            call_id: The model's identifier for this call

        Raises:
            SessionNotReadyError: If the session is not ready; nothing is sent
            DuplicateCallError: If call_id was already used in this turn
            ConnectionLostError: If the channel closes before the reply
        """
        self._session.ensure_ready()
        request = ToolCallRequest(name=name, arguments=arguments or {}, call_id=call_id)

        if call_id is not None:
            if call_id in self._in_flight or call_id in self._results:
                raise DuplicateCallError(f"Call id {call_id} was already used")
            self._in_flight.add(call_id)

        try:
            result = await self._session.call_tool(request.name, request.arguments)
        except RemoteProtocolError as e:
            logger.warning(f"Provider rejected call to {name}: {e}")
            result = ToolCallResult.error(f"Tool '{name}' could not be called: {e.message}")
        finally:
            if call_id is not None:
                self._in_flight.discard(call_id)

        if result.is_error:
            logger.info(f"Tool {name} returned an error: {result.text()}")
        if call_id is not None:
            self._results[call_id] = result
        return result
