"""
Integration tests for push registration endpoints.
"""
import pytest
from sqlalchemy import select

from pingy.models import PushSubscription

WEB_ENDPOINT = "https://fcm.googleapis.com/fcm/send/abc123"
APNS_ENDPOINT = "apns://" + "AB" * 32


def subscription_body(endpoint: str = WEB_ENDPOINT) -> dict:
    return {"subscription": {"endpoint": endpoint, "keys": {"p256dh": "p256dh-key", "auth": "auth-secret"}}}


@pytest.fixture
def push_enabled(mocker):
    """Configure Web Push for the subscription service."""
    settings = mocker.Mock(
        push_configured=True,
        web_push_configured=True,
        web_push_public_key="BPublicKey",
    )
    mocker.patch("pingy.services.push_subscription_service.default_settings", settings)
    return settings


async def stored(db_session):
    result = await db_session.execute(
        select(PushSubscription.user_id, PushSubscription.endpoint, PushSubscription.user_agent)
    )
    return [tuple(row) for row in result.all()]


@pytest.mark.asyncio
class TestPushAPI:
    """Test cases for push endpoints."""

    async def test_public_key_requires_auth(self, client):
        response = await client.get("/api/v1/push/public-key")

        assert response.status_code == 401

    async def test_public_key_when_not_configured(self, client, auth_headers, alice):
        response = await client.get("/api/v1/push/public-key", headers=auth_headers(alice))

        assert response.status_code == 200
        assert response.json() == {"enabled": False, "webPushEnabled": False, "publicKey": None}

    async def test_public_key_when_configured(self, client, auth_headers, alice, push_enabled):
        response = await client.get("/api/v1/push/public-key", headers=auth_headers(alice))

        assert response.json() == {"enabled": True, "webPushEnabled": True, "publicKey": "BPublicKey"}

    async def test_save_when_not_configured(self, client, auth_headers, alice):
        response = await client.post(
            "/api/v1/push/subscriptions",
            headers=auth_headers(alice),
            json=subscription_body(),
        )

        assert response.status_code == 503
        assert response.json() == {"detail": "Push notifications are not configured on server"}

    async def test_save_subscription(self, client, auth_headers, alice, push_enabled, db_session):
        headers = {**auth_headers(alice), "User-Agent": "Mozilla/5.0 Test"}

        response = await client.post("/api/v1/push/subscriptions", headers=headers, json=subscription_body())

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert await stored(db_session) == [(alice.id, WEB_ENDPOINT, "Mozilla/5.0 Test")]

    async def test_save_is_upsert(self, client, auth_headers, alice, push_enabled, db_session):
        url = "/api/v1/push/subscriptions"
        await client.post(url, headers=auth_headers(alice), json=subscription_body(APNS_ENDPOINT))
        await client.post(url, headers=auth_headers(alice), json=subscription_body(APNS_ENDPOINT))

        assert len(await stored(db_session)) == 1

    async def test_save_rejects_bad_endpoint(self, client, auth_headers, alice, push_enabled):
        response = await client.post(
            "/api/v1/push/subscriptions",
            headers=auth_headers(alice),
            json=subscription_body("apns://not-a-token"),
        )

        assert response.status_code == 422

    async def test_delete_subscription(self, client, auth_headers, alice, push_enabled, db_session):
        await client.post("/api/v1/push/subscriptions", headers=auth_headers(alice), json=subscription_body())

        response = await client.request(
            "DELETE",
            "/api/v1/push/subscriptions",
            headers=auth_headers(alice),
            json={"endpoint": WEB_ENDPOINT},
        )

        assert response.status_code == 200
        assert await stored(db_session) == []

    async def test_delete_requires_endpoint(self, client, auth_headers, alice):
        response = await client.request(
            "DELETE",
            "/api/v1/push/subscriptions",
            headers=auth_headers(alice),
            json={"endpoint": "  "},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Subscription endpoint is required"}
