"""Tests for the health check API endpoint."""

from httpx import AsyncClient


async def test_health_returns_200(client: AsyncClient):
    """Health endpoint returns HTTP 200 with all expected fields."""
    response = await client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert "timestamp" in data
    assert data["version"] == "1.0.0"


async def test_health_reports_storage(client: AsyncClient):
    response = await client.get("/api/health")

    data = response.json()
    assert data["articles_dir"] == "available"
    assert data["cache"] == "disabled"
