"""Tests for GET /health: 200 and request id in body and headers."""

import pytest
from httpx import ASGITransport, AsyncClient

from audit_trail.main import app


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert "version" in data


@pytest.mark.asyncio
async def test_health_request_id_auto_generated(client: AsyncClient):
    """GET /health returns a request_id when not provided."""
    r = await client.get("/health")
    assert len(r.json()["request_id"]) > 0
    assert r.headers["X-Request-ID"] == r.json()["request_id"]


@pytest.mark.asyncio
async def test_health_request_id_preserved(client: AsyncClient):
    r = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.json()["request_id"] == "req-123"
    assert r.headers["X-Request-ID"] == "req-123"
