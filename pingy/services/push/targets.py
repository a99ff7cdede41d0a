"""
Push delivery targets and per-device outcomes.

Each stored subscription becomes exactly one target variant, and each
variant has exactly one sender.
"""
import enum
from dataclasses import dataclass
from typing import Optional, Union

from pingy.models.push_subscription import PushSubscription
from pingy.utils.helpers import parse_apns_endpoint


class PushOutcome(str, enum.Enum):
    """Result of one delivery attempt."""
    SENT = "sent"
    TRANSIENT_FAILURE = "transient_failure"
    # Provider says the device is gone; the subscription gets deleted
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class WebPushTarget:
    """Browser subscription delivered through a Web Push service."""

    endpoint: str
    p256dh: str
    auth: str

    def subscription_info(self) -> dict:
        """Subscription in the shape Web Push libraries expect."""
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


@dataclass(frozen=True)
class APNsTarget:
    """iOS device delivered through Apple Push Notification service."""

    endpoint: str
    device_token: str


PushTarget = Union[WebPushTarget, APNsTarget]


@dataclass(frozen=True)
class DeliveryReport:
    """What happened to one target."""

    target: PushTarget
    outcome: PushOutcome
    status_code: Optional[int] = None
    reason: Optional[str] = None


def target_from_subscription(subscription: PushSubscription) -> PushTarget:
    """
    Turn a stored subscription into its delivery target.

    ``apns://<64 hex>`` endpoints become APNs targets, anything else is
    treated as a Web Push endpoint URL.
    """
    device_token = parse_apns_endpoint(subscription.endpoint)
    if device_token is not None:
        return APNsTarget(endpoint=subscription.endpoint, device_token=device_token)

    return WebPushTarget(
        endpoint=subscription.endpoint,
        p256dh=subscription.p256dh,
        auth=subscription.auth,
    )
