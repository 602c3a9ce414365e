"""
Tests for the health check endpoints.
"""
import pytest
from httpx import ASGITransport, AsyncClient

from cafirm.main import app


@pytest.mark.asyncio
async def test_health_check():
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_api_health_check(api: AsyncClient):
    response = await api.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_checks_database(api: AsyncClient):
    response = await api.get("/api/v1/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["database"] == "ok"


@pytest.mark.asyncio
async def test_responses_carry_request_id(api: AsyncClient):
    response = await api.get("/api/v1/health")
    assert "x-request-id" in response.headers
