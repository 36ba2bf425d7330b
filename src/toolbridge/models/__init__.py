"""Pydantic models for HTTP API responses outside the protocol endpoint."""

from toolbridge.models.health import HealthResponse

__all__ = ["HealthResponse"]
