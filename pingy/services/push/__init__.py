"""
Push notification delivery (Web Push and APNs).
"""
from pingy.services.push.apns import APNsCredentialCache, APNsSender
from pingy.services.push.dispatcher import PushDispatcher, PushResult
from pingy.services.push.targets import APNsTarget, DeliveryReport, PushOutcome, WebPushTarget
from pingy.services.push.webpush import WebPushSender

__all__ = [
    "APNsCredentialCache",
    "APNsSender",
    "APNsTarget",
    "DeliveryReport",
    "PushDispatcher",
    "PushOutcome",
    "PushResult",
    "WebPushSender",
    "WebPushTarget",
]
