"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Depends

from toolbridge import __version__
from toolbridge.dependencies import get_connection_store, get_tool_server
from toolbridge.models.health import HealthResponse
from toolbridge.server import ConnectionStore, ToolServer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    server: ToolServer = Depends(get_tool_server),
    connections: ConnectionStore = Depends(get_connection_store),
) -> HealthResponse:
    """Health check endpoint.

    Returns the current health status and version together with the
    number of registered tools and open sessions.
    """
    logger.debug(f"Health check: {len(server.registry)} tools, {len(connections)} sessions")
    return HealthResponse(
        status="ok",
        version=__version__,
        server_name=server.info.name,
        tool_count=len(server.registry),
        active_sessions=len(connections),
    )
