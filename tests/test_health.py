"""Smoke tests for health and app wiring."""

from httpx import AsyncClient


async def test_health_returns_ok(client: AsyncClient) -> None:
    """GET /api/v1/health returns 200 and status ok."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data.get("status") == "ok"


async def test_health_echoes_request_id(client: AsyncClient) -> None:
    """The request id header is forwarded back on every response."""
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "smoke-1"})
    assert response.headers.get("X-Request-ID") == "smoke-1"


async def test_unknown_route_is_json_404(client: AsyncClient) -> None:
    response = await client.get("/api/v1/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "HTTP_ERROR"
