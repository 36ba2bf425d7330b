"""Streamable HTTP protocol endpoint.

A single path accepts every verb:

- POST carries one JSON-RPC message from the consumer. ``initialize``
  opens a session and returns its id in the Mcp-Session-Id header; every
  other message must carry that header.
- GET opens an SSE stream of server-initiated messages for the session.
- DELETE ends the session.
"""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from toolbridge.dependencies import get_connection_store
from toolbridge.errors import MalformedMessageError
from toolbridge.protocol import messages as rpc
from toolbridge.protocol.messages import JSONRPCRequest, error_response, parse_message
from toolbridge.protocol.types import INITIALIZE
from toolbridge.server import ConnectionStore, ServerConnection
from toolbridge.transports import SESSION_HEADER

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mcp"])


def _rpc_error(
    status_code: int,
    request_id: rpc.RequestId | None,
    code: int,
    message: str,
) -> JSONResponse:
    """Build an HTTP response carrying a JSON-RPC error body."""
    return JSONResponse(
        status_code=status_code,
        content=error_response(request_id, code, message).to_dict(),
    )


def _lookup_session(
    request: Request,
    connections: ConnectionStore,
    request_id: rpc.RequestId | None = None,
) -> ServerConnection | JSONResponse:
    """Resolve the session header to a connection, or an error response.

    A missing header gives 400, an unknown id gives 404.
    """
    session_id = request.headers.get(SESSION_HEADER)
    if session_id is None:
        return _rpc_error(
            400, request_id, rpc.SESSION_INVALID, f"Missing {SESSION_HEADER} header"
        )
    connection = connections.get(session_id)
    if connection is None:
        return _rpc_error(
            404, request_id, rpc.SESSION_INVALID, f"Session {session_id} not found"
        )
    return connection


@router.post("")
async def post_message(
    request: Request,
    connections: ConnectionStore = Depends(get_connection_store),
) -> Response:
    """Receive one JSON-RPC message from a consumer.

    Returns:
        The JSON-RPC response for requests, 202 Accepted for notifications
        and responses
    """
    body = await request.body()
    try:
        message = parse_message(body)
    except MalformedMessageError as e:
        logger.warning(f"Rejected malformed message: {e}")
        return _rpc_error(400, None, rpc.PARSE_ERROR, str(e))

    if isinstance(message, JSONRPCRequest) and message.method == INITIALIZE:
        session_id, connection = connections.create()
        response = await connection.handle_message(message)
        if not connection.initialized:
            # the handshake was rejected; do not keep a session for it
            connections.remove(session_id)
            return JSONResponse(content=response.to_dict())
        return JSONResponse(
            content=response.to_dict(),
            headers={SESSION_HEADER: session_id},
        )

    request_id = message.id if isinstance(message, JSONRPCRequest) else None
    resolved = _lookup_session(request, connections, request_id)
    if isinstance(resolved, JSONResponse):
        return resolved

    response = await resolved.handle_message(message)
    if response is None:
        return Response(status_code=202)
    return JSONResponse(content=response.to_dict())


@router.get("")
async def open_stream(
    request: Request,
    connections: ConnectionStore = Depends(get_connection_store),
) -> Response:
    """Stream server-initiated messages for a session via SSE.

    SSE Events:
        - message: one JSON-RPC message per event, with an increasing id
    """
    if "text/event-stream" not in request.headers.get("accept", ""):
        return JSONResponse(
            status_code=406,
            content={"detail": "Accept must include text/event-stream"},
        )

    resolved = _lookup_session(request, connections)
    if isinstance(resolved, JSONResponse):
        return resolved
    connection = resolved

    last_event_id = request.headers.get("last-event-id")
    if last_event_id is not None:
        logger.debug(f"Stream resumed after event {last_event_id}; no replay kept")

    settings = request.app.state.settings
    session_id = request.headers[SESSION_HEADER]

    async def event_generator():
        """Forward the connection's outbox until the session or client goes away."""
        while not connection.closed:
            # an open stream keeps the session alive
            connections.touch(session_id)
            if await request.is_disconnected():
                logger.debug("Stream client disconnected")
                break
            try:
                message = await asyncio.wait_for(connection.outbox.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            yield {
                "event": "message",
                "id": str(connection.next_event_id()),
                "data": json.dumps(message.to_dict(), ensure_ascii=False),
            }

    return EventSourceResponse(event_generator(), ping=settings.sse_ping_interval)


@router.delete("")
async def end_session(
    request: Request,
    connections: ConnectionStore = Depends(get_connection_store),
) -> Response:
    """End a session. Later requests with its id get 404."""
    resolved = _lookup_session(request, connections)
    if isinstance(resolved, JSONResponse):
        return resolved

    connections.remove(request.headers[SESSION_HEADER])
    return Response(status_code=204)
