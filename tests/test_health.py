"""Tests for health endpoints and request authentication."""

from datetime import timedelta
from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.core.security import create_access_token


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_detailed_health_reports_degraded_without_redis(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/detailed")
    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "healthy"
    assert data["redis"] == "unhealthy"
    assert data["status"] == "degraded"


@pytest.mark.asyncio
async def test_ping_and_request_id(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "req-123"})
    assert response.json() == {"message": "pong"}
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_token_without_role_is_rejected(client: AsyncClient) -> None:
    token = create_access_token({"sub": str(uuid4())}, timedelta(minutes=5))
    response = await client.get(
        "/api/v1/appointments/",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_with_unknown_role_is_rejected(client: AsyncClient) -> None:
    token = create_access_token({"sub": str(uuid4()), "role": "pharmacist"}, timedelta(minutes=5))
    response = await client.get(
        "/api/v1/appointments/",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/appointments/",
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401
