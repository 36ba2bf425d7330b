"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and
configures the provider's HTTP application: the streamable protocol endpoint
and a health check.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolbridge.config import ToolBridgeSettings
from toolbridge.routers import health, mcp
from toolbridge.server import ConnectionStore, ToolServer
from toolbridge.tools import build_default_server
from toolbridge.transports import SESSION_HEADER

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    Creates the session id store at startup and ends every open session at
    shutdown so that pending server streams finish.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    server: ToolServer = app.state.tool_server
    settings = app.state.settings
    app.state.connections = ConnectionStore(
        server, idle_timeout=settings.session_idle_timeout
    )
    logger.info(
        f"Provider {server.info.name} {server.info.version} ready "
        f"with {len(server.registry)} tools"
    )

    yield

    app.state.connections.close_all()
    logger.info("All provider sessions closed")


def create_app(
    server: ToolServer | None = None,
    settings: ToolBridgeSettings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        server: The provider to expose. Defaults to the built-in provider.
        settings: Optional settings instance. If not provided, settings will
                  be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from toolbridge.dependencies import get_settings

        settings = get_settings()

    if server is None:
        server = build_default_server(settings)

    app = FastAPI(
        title="toolbridge",
        description="Tool provider over streamable HTTP",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.tool_server = server

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[SESSION_HEADER],
    )

    app.include_router(health.router)
    app.include_router(mcp.router, prefix=settings.http_path)

    return app
