"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "error").
        version: The version of toolbridge.
        server_name: Name the provider announces in the handshake.
        tool_count: Number of registered tools.
        active_sessions: Number of open HTTP sessions.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of toolbridge")
    server_name: str = Field(..., description="Provider name sent during handshake")
    tool_count: int = Field(default=0, description="Number of registered tools")
    active_sessions: int = Field(default=0, description="Number of open HTTP sessions")
