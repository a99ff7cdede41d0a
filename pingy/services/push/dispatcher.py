"""
Push notification fan-out.

Every device of the recipient is attempted concurrently; one failing
device never stops the others. Devices the provider reports as gone are
deleted afterwards.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pingy.repositories.push_subscription_repo import PushSubscriptionRepository
from pingy.services.events import MessageCreatedEvent
from pingy.services.push.apns import APNsSender
from pingy.services.push.payloads import build_apns_payload, build_web_push_payload
from pingy.services.push.targets import (
    APNsTarget,
    DeliveryReport,
    PushOutcome,
    PushTarget,
    target_from_subscription,
)
from pingy.services.push.webpush import WebPushSender

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Summary of one fan-out."""

    NOT_CONFIGURED = "not_configured"
    NO_SUBSCRIPTIONS = "no_subscriptions"
    RECIPIENT_ONLINE = "recipient_online"

    sent: int = 0
    attempted: int = 0
    skipped: bool = False
    reason: Optional[str] = None
    failed: int = 0
    removed: int = 0

    @classmethod
    def skip(cls, reason: str) -> "PushResult":
        return cls(sent=0, attempted=0, skipped=True, reason=reason)


PROVIDER_NOT_CONFIGURED = "provider_not_configured"


class PushDispatcher:
    """Delivers one message notification to every device of a user."""

    def __init__(
        self,
        db: AsyncSession,
        web_push: Optional[WebPushSender] = None,
        apns: Optional[APNsSender] = None
    ):
        """
        Initialize dispatcher.

        Args:
            db: Database session for subscription lookup and cleanup
            web_push: Web Push sender, None when VAPID is not configured
            apns: APNs sender, None when APNs is not configured
        """
        self.db = db
        self.web_push = web_push
        self.apns = apns
        self.subscription_repo = PushSubscriptionRepository(db)

    @property
    def configured(self) -> bool:
        return self.web_push is not None or self.apns is not None

    async def _deliver(
        self,
        target: PushTarget,
        message: MessageCreatedEvent,
        badge_count: Optional[int]
    ) -> DeliveryReport:
        if isinstance(target, APNsTarget):
            if self.apns is None:
                return DeliveryReport(target, PushOutcome.TRANSIENT_FAILURE, reason=PROVIDER_NOT_CONFIGURED)
            return await self.apns.send(
                target,
                build_apns_payload(message, badge_count),
                collapse_id=message.conversation_id,
            )

        if self.web_push is None:
            return DeliveryReport(target, PushOutcome.TRANSIENT_FAILURE, reason=PROVIDER_NOT_CONFIGURED)
        return await self.web_push.send(target, build_web_push_payload(message, badge_count))

    async def dispatch(
        self,
        recipient_user_id: str,
        message: MessageCreatedEvent,
        badge_count: Optional[int] = None
    ) -> PushResult:
        """
        Notify every registered device of a user about a new message.

        Args:
            recipient_user_id: User to notify
            message: The created message
            badge_count: Unread count to show on the device

        Returns:
            PushResult; skipped results carry the reason nothing was attempted
        """
        if not self.configured:
            return PushResult.skip(PushResult.NOT_CONFIGURED)

        subscriptions = await self.subscription_repo.list_for_user(recipient_user_id)
        if not subscriptions:
            return PushResult.skip(PushResult.NO_SUBSCRIPTIONS)

        targets: List[PushTarget] = [target_from_subscription(s) for s in subscriptions]

        reports = await asyncio.gather(
            *(self._deliver(target, message, badge_count) for target in targets),
            return_exceptions=True,
        )

        result = PushResult(attempted=len(targets))
        gone_endpoints = []

        for target, report in zip(targets, reports):
            if isinstance(report, BaseException):
                logger.error(f"Push to {target.endpoint[:60]} raised {type(report).__name__}: {report}")
                result.failed += 1
            elif report.outcome == PushOutcome.SENT:
                result.sent += 1
            else:
                result.failed += 1
                if report.outcome == PushOutcome.PERMANENT_FAILURE:
                    gone_endpoints.append(target.endpoint)

        # Session work stays sequential, after all network calls finished
        for endpoint in gone_endpoints:
            result.removed += await self.subscription_repo.delete_by_endpoint(endpoint)
        if gone_endpoints:
            await self.db.commit()

        logger.info(
            f"Push for message {message.message_id} to {recipient_user_id}: "
            f"{result.sent}/{result.attempted} sent, {result.failed} failed, {result.removed} removed"
        )
        return result
