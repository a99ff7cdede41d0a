"""
Tests for the APNs sender and provider token cache.
"""
import asyncio
import json

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from pingy.services.push.apns import APNS_SANDBOX_URL, APNsCredentialCache, APNsSender
from pingy.services.push.targets import APNsTarget, PushOutcome

DEVICE_TOKEN = "ab" * 32


@pytest.fixture(scope="module")
def signing_key():
    """Throwaway P-256 key standing in for an APNs .p8 key."""
    key = ec.generate_private_key(ec.SECP256R1())
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    return key, pem


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_sender(pem, handler, clock=None):
    credentials = APNsCredentialCache(
        key_id="KEY123", team_id="TEAM456", private_key=pem, ttl_seconds=3000, clock=clock or FakeClock()
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return APNsSender(credentials, bundle_id="app.pingy.ios", use_sandbox=True, client=client)


def target() -> APNsTarget:
    return APNsTarget(endpoint=f"apns://{DEVICE_TOKEN}", device_token=DEVICE_TOKEN)


@pytest.mark.asyncio
class TestAPNsCredentialCache:
    """Test cases for provider token reuse."""

    async def test_token_carries_key_id_and_team(self, signing_key):
        key, pem = signing_key
        cache = APNsCredentialCache("KEY123", "TEAM456", pem, clock=FakeClock())

        token = await cache.get_token()

        assert jwt.get_unverified_header(token)["kid"] == "KEY123"
        claims = jwt.decode(token, key.public_key(), algorithms=["ES256"])
        assert claims["iss"] == "TEAM456"
        assert claims["iat"] == 1_700_000_000

    async def test_token_reused_within_ttl(self, signing_key):
        _, pem = signing_key
        clock = FakeClock()
        cache = APNsCredentialCache("KEY123", "TEAM456", pem, ttl_seconds=3000, clock=clock)

        first = await cache.get_token()
        clock.now += 2999
        assert await cache.get_token() == first

        clock.now += 2
        assert await cache.get_token() != first

    async def test_invalidate_forces_new_token(self, signing_key):
        _, pem = signing_key
        clock = FakeClock()
        cache = APNsCredentialCache("KEY123", "TEAM456", pem, clock=clock)

        first = await cache.get_token()
        cache.invalidate()
        clock.now += 1

        assert await cache.get_token() != first


@pytest.mark.asyncio
class TestAPNsSender:
    """Test cases for APNs delivery."""

    async def test_successful_send(self, signing_key):
        _, pem = signing_key
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            return httpx.Response(200)

        sender = make_sender(pem, handler)
        report = await sender.send(target(), {"aps": {"alert": {"title": "hi"}}}, collapse_id="conv-1")

        assert report.outcome == PushOutcome.SENT
        request = captured["request"]
        assert str(request.url) == f"{APNS_SANDBOX_URL}/3/device/{DEVICE_TOKEN}"
        assert request.headers["apns-topic"] == "app.pingy.ios"
        assert request.headers["apns-push-type"] == "alert"
        assert request.headers["apns-priority"] == "10"
        assert request.headers["apns-collapse-id"] == "conv-1"
        assert request.headers["authorization"].startswith("bearer ")
        assert json.loads(request.content) == {"aps": {"alert": {"title": "hi"}}}
        await sender.aclose()

    @pytest.mark.parametrize("status_code,reason", [
        (410, "Unregistered"),
        (400, "BadDeviceToken"),
        (400, "DeviceTokenNotForTopic"),
    ])
    async def test_dead_device_is_permanent(self, signing_key, status_code, reason):
        _, pem = signing_key
        sender = make_sender(pem, lambda request: httpx.Response(status_code, json={"reason": reason}))

        report = await sender.send(target(), {})

        assert report.outcome == PushOutcome.PERMANENT_FAILURE
        assert report.status_code == status_code
        assert report.reason == reason

    async def test_server_error_is_transient(self, signing_key):
        _, pem = signing_key
        sender = make_sender(pem, lambda request: httpx.Response(503, json={"reason": "ServiceUnavailable"}))

        report = await sender.send(target(), {})

        assert report.outcome == PushOutcome.TRANSIENT_FAILURE

    async def test_other_bad_request_is_transient(self, signing_key):
        _, pem = signing_key
        sender = make_sender(pem, lambda request: httpx.Response(400, json={"reason": "PayloadTooLarge"}))

        report = await sender.send(target(), {})

        assert report.outcome == PushOutcome.TRANSIENT_FAILURE

    @pytest.mark.parametrize("body", [[], "Unregistered", 410])
    async def test_error_body_that_is_not_an_object_has_no_reason(self, signing_key, body):
        _, pem = signing_key
        sender = make_sender(pem, lambda request: httpx.Response(500, json=body))

        report = await sender.send(target(), {})

        assert report.outcome == PushOutcome.TRANSIENT_FAILURE
        assert report.status_code == 500
        assert report.reason is None

    async def test_expired_provider_token_is_resigned(self, signing_key):
        _, pem = signing_key
        clock = FakeClock()
        seen_tokens = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_tokens.append(request.headers["authorization"])
            if len(seen_tokens) == 1:
                return httpx.Response(403, json={"reason": "ExpiredProviderToken"})
            return httpx.Response(200)

        sender = make_sender(pem, handler, clock=clock)

        first = await sender.send(target(), {})
        clock.now += 1
        second = await sender.send(target(), {})

        assert first.outcome == PushOutcome.TRANSIENT_FAILURE
        assert second.outcome == PushOutcome.SENT
        assert seen_tokens[0] != seen_tokens[1]

    async def test_network_error_is_transient(self, signing_key):
        _, pem = signing_key

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        sender = make_sender(pem, handler)
        report = await sender.send(target(), {})

        assert report.outcome == PushOutcome.TRANSIENT_FAILURE


async def test_concurrent_callers_share_one_signature(signing_key, mocker):
    _, pem = signing_key
    cache = APNsCredentialCache("KEY123", "TEAM456", pem, clock=FakeClock())
    sign = mocker.spy(cache, "_sign")

    tokens = await asyncio.gather(*(cache.get_token() for _ in range(5)))

    assert len(set(tokens)) == 1
    assert sign.call_count == 1
