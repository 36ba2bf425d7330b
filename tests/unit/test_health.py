"""Unit tests for the health check endpoint."""

import pytest


@pytest.mark.asyncio
async def test_health_check_returns_ok(async_client):
    """Test that health check returns status ok."""
    response = await async_client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_health_check_reports_tools_and_sessions(async_client):
    """Test that tool and session counts are reported."""
    response = await async_client.get("/api/v1/health")

    data = response.json()
    assert data["server_name"] == "toolbridge"
    assert data["tool_count"] == 4
    assert data["active_sessions"] == 0
