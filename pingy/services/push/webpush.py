"""
Web Push (VAPID) sender built on pywebpush.
"""
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from pywebpush import WebPushException, webpush
from requests.exceptions import RequestException

from pingy.config import Settings
from pingy.services.push.targets import DeliveryReport, PushOutcome, WebPushTarget

logger = logging.getLogger(__name__)


class WebPushSender:
    """Sends encrypted payloads to browser push services."""

    # Push service says the subscription expired or was unsubscribed
    PERMANENT_STATUSES = frozenset({404, 410})

    def __init__(
        self,
        public_key: str,
        private_key: str,
        subject: str,
        ttl: int = 180,
        timeout: Optional[float] = 10.0
    ):
        """
        Initialize Web Push sender.

        Args:
            public_key: VAPID public key handed to browsers
            private_key: VAPID private key used to sign requests
            subject: mailto: or https: contact for the push service
            ttl: Seconds the push service keeps an undelivered message
            timeout: Request timeout in seconds
        """
        self.public_key = public_key
        self.private_key = private_key
        self.subject = subject
        self.ttl = ttl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["WebPushSender"]:
        """Build a sender from settings, or None when VAPID keys are missing."""
        if not settings.web_push_configured:
            return None

        return cls(
            public_key=settings.web_push_public_key,
            private_key=settings.web_push_private_key,
            subject=settings.web_push_subject,
            ttl=settings.web_push_ttl,
        )

    def _send_blocking(self, target: WebPushTarget, data: str) -> None:
        webpush(
            subscription_info=target.subscription_info(),
            data=data,
            vapid_private_key=self.private_key,
            # pywebpush adds aud/exp to the claims dict, so pass a fresh one
            vapid_claims={"sub": self.subject},
            ttl=self.ttl,
            timeout=self.timeout,
            headers={"Urgency": "high"},
        )

    async def send(self, target: WebPushTarget, payload: Dict[str, Any]) -> DeliveryReport:
        """
        Deliver one notification.

        pywebpush is synchronous, so the request runs in a worker thread.

        Args:
            target: Browser subscription
            payload: JSON payload for the service worker

        Returns:
            Delivery report (never raises for provider or transport errors)
        """
        try:
            await asyncio.to_thread(self._send_blocking, target, json.dumps(payload))
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None

            if status_code in self.PERMANENT_STATUSES:
                logger.info(f"Web Push subscription gone ({status_code}): {target.endpoint[:60]}")
                return DeliveryReport(target, PushOutcome.PERMANENT_FAILURE, status_code=status_code)

            logger.warning(f"Web Push delivery failed ({status_code}): {e.message}")
            return DeliveryReport(
                target, PushOutcome.TRANSIENT_FAILURE, status_code=status_code, reason=e.message
            )
        except RequestException as e:
            logger.warning(f"Web Push request failed: {e}")
            return DeliveryReport(target, PushOutcome.TRANSIENT_FAILURE, reason=str(e))

        return DeliveryReport(target, PushOutcome.SENT)
