import pytest
from httpx import ASGITransport, AsyncClient

from loyalty_admin_api.core.settings import settings


@pytest.mark.asyncio
async def test_admin_api_key_enforced_when_configured(app_with_db, admin_headers, monkeypatch) -> None:
    app, _ = app_with_db
    monkeypatch.setattr(settings, "admin_api_key", "loyalty-secret")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        missing = await client.get("/api/v1/coin-conversion", headers=admin_headers)
        wrong = await client.get(
            "/api/v1/coin-conversion",
            headers={**admin_headers, "X-API-Key": "nope"},
        )
        accepted = await client.get(
            "/api/v1/coin-conversion",
            headers={**admin_headers, "X-API-Key": "loyalty-secret"},
        )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert wrong.json() == {"status": 401, "message": "Invalid API key", "data": None}
    assert accepted.status_code == 200
    assert accepted.json()["data"] == []
