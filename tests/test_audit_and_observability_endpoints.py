import pytest
from httpx import ASGITransport, AsyncClient

from conftest import create_admin, create_customers


@pytest.mark.asyncio
async def test_audit_logs_can_be_filtered(app_with_db, admin_headers) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post(
            "/api/v1/coin-conversion",
            json={"pointsPerCoin": 10, "minimumPoints": 0, "apiKey": "hunter2"},
            headers=admin_headers,
        )
        await client.put("/api/v1/coin-conversion/reset", headers=admin_headers)

        everything = await client.get("/api/v1/audit-logs", headers=admin_headers)
        resets = await client.get(
            "/api/v1/audit-logs",
            params={"action": "RESET_COIN_CONVERSION_RULE"},
            headers=admin_headers,
        )
        by_model = await client.get(
            "/api/v1/audit-logs",
            params={"targetModel": "ReferralProgramRule"},
            headers=admin_headers,
        )

    assert everything.status_code == 200
    logs = everything.json()["data"]
    assert len(logs) == 2
    create_log = next(log for log in logs if log["action"] == "CREATE_OR_UPDATE_COIN_CONVERSION_RULE")
    assert create_log["details"]["apiKey"] == "[REDACTED]"
    assert create_log["targetModel"] == "CoinConversionRule"
    assert create_log["actorEmail"] == "admin@loyalty.test"

    assert [log["action"] for log in resets.json()["data"]] == ["RESET_COIN_CONVERSION_RULE"]
    assert by_model.json()["data"] == []


@pytest.mark.asyncio
async def test_audit_logs_require_permission(app_with_db) -> None:
    app, session_factory = app_with_db
    manager = await create_admin(session_factory, permissions=["VIEW_REFERRAL_PROGRAM"], email="manager@loyalty.test")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/audit-logs", headers={"X-Admin-Id": str(manager.id)})

    assert response.status_code == 403
    assert response.json()["message"] == "Permission VIEW_AUDIT_LOGS required"


@pytest.mark.asyncio
async def test_referral_observability_snapshot(app_with_db, admin_headers) -> None:
    app, session_factory = app_with_db
    referrer, referee = await create_customers(session_factory, 2)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post(
            "/api/v1/referral-program-rules",
            json={
                "pointsForReferrer": 10,
                "pointsForReferee": 5,
                "minimumPurchaseAmount": 0,
                "expiryDays": 7,
                "maxReferralsPerUser": 1,
            },
            headers=admin_headers,
        )
        await client.post(
            "/api/v1/referral-program/entries",
            json={"referrerId": str(referrer.id), "refereeId": str(referee.id)},
            headers=admin_headers,
        )
        await client.post("/api/v1/referral-program", json={"userId": str(referrer.id)}, headers=admin_headers)
        snapshot = await client.get("/api/v1/observability/referrals", headers=admin_headers)

    assert snapshot.status_code == 200
    body = snapshot.json()
    assert body["referrals"] == {"registered": 1, "limit_reached": 1}
    assert body["rules"] == {"referral_program:created": 1}
    assert body["conversions"] == {}
