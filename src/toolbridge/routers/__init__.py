"""FastAPI routers for the provider's HTTP endpoints."""

from toolbridge.routers import health, mcp

__all__ = [
    "health",
    "mcp",
]
