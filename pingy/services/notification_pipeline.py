"""
Notification pipeline.

Consumes MessageCreatedEvent after the message is committed. An online
recipient gets the message marked delivered right away; an offline one
gets a push notification carrying their unread count as the badge.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pingy.core.presence import PresenceRegistry
from pingy.services.events import MessageCreatedEvent
from pingy.services.message_service import MessageService
from pingy.services.push.apns import APNsSender
from pingy.services.push.dispatcher import PushDispatcher, PushResult
from pingy.services.push.webpush import WebPushSender

logger = logging.getLogger(__name__)

DeliveryListener = Callable[[List[Dict[str, Any]]], Awaitable[None]]


@dataclass
class NotificationOutcome:
    """What the pipeline did for one message."""

    delivered: List[Dict[str, Any]] = field(default_factory=list)
    push: Optional[PushResult] = None


class NotificationPipeline:
    """Routes new messages to immediate delivery or push notification."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        presence: PresenceRegistry,
        web_push: Optional[WebPushSender] = None,
        apns: Optional[APNsSender] = None,
        delivery_listener: Optional[DeliveryListener] = None
    ):
        """
        Initialize pipeline.

        Args:
            session_factory: Opens sessions independent of any request
            presence: Registry deciding online vs offline
            web_push: Web Push sender, if configured
            apns: APNs sender, if configured
            delivery_listener: Awaited with delivered updates (realtime broadcast)
        """
        self.session_factory = session_factory
        self.presence = presence
        self.web_push = web_push
        self.apns = apns
        self.delivery_listener = delivery_listener
        self._tasks: Set[asyncio.Task] = set()

    def publish(self, event: MessageCreatedEvent) -> asyncio.Task:
        """
        Schedule handling of a committed message in the background.

        Failures are logged and never reach the caller that wrote the message.

        Returns:
            The scheduled task
        """
        task = asyncio.create_task(self._run(event), name=f"notify-{event.message_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, event: MessageCreatedEvent) -> None:
        try:
            await self.handle_message_created(event)
        except Exception:
            logger.exception(f"Notification pipeline failed for message {event.message_id}")

    async def drain(self) -> None:
        """Wait for all scheduled notifications (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def handle_message_created(self, event: MessageCreatedEvent) -> NotificationOutcome:
        """
        Deliver or push a newly created message.

        Args:
            event: The committed message

        Returns:
            Delivered updates when the recipient was online, the push result otherwise
        """
        if self.presence.is_online(event.recipient_id):
            async with self.session_factory() as session:
                updates = await MessageService(session).mark_delivered(
                    event.recipient_id, message_ids=[event.message_id]
                )

            if updates and self.delivery_listener is not None:
                await self.delivery_listener(updates)
            return NotificationOutcome(delivered=updates)

        push = await self._push(event)
        return NotificationOutcome(push=push)

    async def dispatch_push_if_offline(self, event: MessageCreatedEvent) -> PushResult:
        """
        Send the push notification only if the recipient has no live connection.

        Returns:
            PushResult, skipped with reason recipient_online when online
        """
        if self.presence.is_online(event.recipient_id):
            return PushResult.skip(PushResult.RECIPIENT_ONLINE)
        return await self._push(event)

    async def _push(self, event: MessageCreatedEvent) -> PushResult:
        async with self.session_factory() as session:
            badge_count = await MessageService(session).count_unread(event.recipient_id)
            dispatcher = PushDispatcher(session, web_push=self.web_push, apns=self.apns)
            return await dispatcher.dispatch(event.recipient_id, event, badge_count=badge_count)

    async def aclose(self) -> None:
        """Drain pending work and release provider connections."""
        await self.drain()
        if self.apns is not None:
            await self.apns.aclose()
