"""Dependency injection providers for FastAPI endpoints."""

from functools import lru_cache

from fastapi import HTTPException, Request

from toolbridge.config import ToolBridgeSettings
from toolbridge.server import ConnectionStore, ToolServer


@lru_cache
def get_settings() -> ToolBridgeSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the TOOLBRIDGE_ prefix.

    Returns:
        ToolBridgeSettings: The application configuration settings.
    """
    return ToolBridgeSettings()


def get_tool_server(request: Request) -> ToolServer:
    """Get the provider served by this app."""
    return request.app.state.tool_server


def get_connection_store(request: Request) -> ConnectionStore:
    """Get the session id store created during application startup.

    Raises:
        HTTPException: If the app has not started yet (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "connections"):
        raise HTTPException(
            status_code=503,
            detail="Provider sessions not initialized",
        )
    return request.app.state.connections
