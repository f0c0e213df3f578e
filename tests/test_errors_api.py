import pytest
from httpx import ASGITransport, AsyncClient

from fulfillment_api.api.main import app


@pytest.mark.anyio
async def test_health_echoes_correlation_id():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/api/v1/health", headers={"X-Correlation-ID": "abc-123"})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Healthy"}
    assert resp.headers["X-Correlation-ID"] == "abc-123"


@pytest.mark.anyio
async def test_missing_platform_header():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/api/v1/health/platform")
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Platform ID is required. Please provide 'x-platform' header."
    assert body["path"] == "/api/v1/health/platform"
    assert body["method"] == "GET"


@pytest.mark.anyio
async def test_malformed_platform_header():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/api/v1/health/platform", headers={"X-Platform": "not-a-uuid"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid Platform ID format. Must be a valid UUID."


@pytest.mark.anyio
async def test_validation_errors_are_400_and_joined(client_for):
    async with client_for() as ac:
        resp = await ac.post("/api/v1/auth/login", json={"email": "not-an-email"})
    assert resp.status_code == 400
    body = resp.json()
    paths = [s["path"] for s in body["error_sources"]]
    assert paths == ["email", "password"]
    assert " | " in body["message"]
    assert body["message"].endswith("Field required")


@pytest.mark.anyio
async def test_missing_bearer_token_is_401(client_for):
    async with client_for() as ac:
        resp = await ac.get("/api/v1/countries")
    assert resp.status_code == 401
    assert resp.json()["message"] == "You are not authorized"
