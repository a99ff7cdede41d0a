"""
Apple Push Notification service sender.

Requests are authenticated with a short-lived ES256 provider token that
is signed once and reused until it ages out.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx
import jwt

from pingy.config import Settings
from pingy.services.push.targets import APNsTarget, DeliveryReport, PushOutcome
from pingy.utils.helpers import mask_token

logger = logging.getLogger(__name__)

APNS_PRODUCTION_URL = "https://api.push.apple.com"
APNS_SANDBOX_URL = "https://api.sandbox.push.apple.com"


class APNsCredentialCache:
    """
    Holds the current provider token and refreshes it when stale.

    Refresh is single flight: concurrent callers wait on one lock and the
    first one in signs a new token for everybody.
    """

    def __init__(
        self,
        key_id: str,
        team_id: str,
        private_key: str,
        ttl_seconds: int = 3000,
        clock: Callable[[], float] = time.time
    ):
        self.key_id = key_id
        self.team_id = team_id
        self.private_key = private_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._token: Optional[str] = None
        self._issued_at: float = 0.0

    def _is_fresh(self) -> bool:
        return self._token is not None and self._clock() - self._issued_at < self.ttl_seconds

    def _sign(self, issued_at: float) -> str:
        return jwt.encode(
            {"iss": self.team_id, "iat": int(issued_at)},
            self.private_key,
            algorithm="ES256",
            headers={"kid": self.key_id},
        )

    async def get_token(self) -> str:
        """
        Get a valid provider token, signing a new one if needed.

        Returns:
            Compact JWT for the authorization header
        """
        if self._is_fresh():
            return self._token

        async with self._lock:
            if not self._is_fresh():
                issued_at = self._clock()
                self._token = self._sign(issued_at)
                self._issued_at = issued_at
                logger.info(f"Signed new APNs provider token (kid={self.key_id})")
            return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next request signs a fresh one."""
        self._token = None
        self._issued_at = 0.0


class APNsSender:
    """Sends alert notifications to iOS devices over HTTP/2."""

    # 400 reasons meaning the token will never work again
    PERMANENT_REASONS = frozenset({"BadDeviceToken", "DeviceTokenNotForTopic", "Unregistered"})
    PROVIDER_TOKEN_REASONS = frozenset({"ExpiredProviderToken", "InvalidProviderToken"})

    def __init__(
        self,
        credentials: APNsCredentialCache,
        bundle_id: str,
        use_sandbox: bool = False,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize APNs sender.

        Args:
            credentials: Provider token cache
            bundle_id: App bundle ID, sent as apns-topic
            use_sandbox: Target the development environment
            timeout: Request timeout in seconds
            client: Preconfigured HTTP client (created lazily otherwise)
        """
        self.credentials = credentials
        self.bundle_id = bundle_id
        self.base_url = APNS_SANDBOX_URL if use_sandbox else APNS_PRODUCTION_URL
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["APNsSender"]:
        """Build a sender from settings, or None when APNs is not configured."""
        if not settings.apns_configured:
            return None

        credentials = APNsCredentialCache(
            key_id=settings.apns_key_id,
            team_id=settings.apns_team_id,
            private_key=settings.apns_private_key,
            ttl_seconds=settings.apns_token_ttl_seconds,
        )
        return cls(
            credentials,
            bundle_id=settings.apns_bundle_id,
            use_sandbox=settings.apns_use_sandbox,
            timeout=settings.apns_request_timeout,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(http2=True, timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP/2 connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _reason(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("reason") if isinstance(body, dict) else None

    async def send(
        self,
        target: APNsTarget,
        payload: Dict[str, Any],
        collapse_id: Optional[str] = None
    ) -> DeliveryReport:
        """
        Deliver one notification.

        Args:
            target: Device to notify
            payload: APNs JSON payload
            collapse_id: Notifications sharing it replace each other on the device

        Returns:
            Delivery report (never raises for provider or transport errors)
        """
        token = await self.credentials.get_token()
        headers = {
            "authorization": f"bearer {token}",
            "apns-topic": self.bundle_id,
            "apns-push-type": "alert",
            "apns-priority": "10",
        }
        if collapse_id:
            headers["apns-collapse-id"] = collapse_id

        url = f"{self.base_url}/3/device/{target.device_token}"
        device = mask_token(target.device_token)

        try:
            response = await self.client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"APNs request to device {device} failed: {e}")
            return DeliveryReport(target, PushOutcome.TRANSIENT_FAILURE, reason=str(e))

        if 200 <= response.status_code < 300:
            return DeliveryReport(target, PushOutcome.SENT, status_code=response.status_code)

        reason = self._reason(response)

        if response.status_code in (404, 410) or (
            response.status_code == 400 and reason in self.PERMANENT_REASONS
        ):
            logger.info(f"APNs rejected device {device} permanently ({response.status_code} {reason})")
            return DeliveryReport(
                target, PushOutcome.PERMANENT_FAILURE, status_code=response.status_code, reason=reason
            )

        if response.status_code == 403 and reason in self.PROVIDER_TOKEN_REASONS:
            logger.warning(f"APNs refused provider token ({reason}); it will be re-signed")
            self.credentials.invalidate()
        else:
            logger.warning(f"APNs delivery to device {device} failed ({response.status_code} {reason})")

        return DeliveryReport(
            target, PushOutcome.TRANSIENT_FAILURE, status_code=response.status_code, reason=reason
        )
