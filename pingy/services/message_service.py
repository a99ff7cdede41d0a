"""
Message service containing business logic for messaging operations.
Handles message creation and the delivered/seen lifecycle.
"""
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.core.cache import (
    cache_unread_count,
    get_cached_unread_count,
    invalidate_unread_count_cache,
)
from pingy.core.exceptions import AccessDenied, ValidationError
from pingy.models.message import Message, MessageType
from pingy.repositories.conversation_repo import (
    ConversationParticipantRepository,
    ConversationRepository,
)
from pingy.repositories.message_repo import MessageReactionRepository, MessageRepository
from pingy.repositories.user_repo import UserRepository
from pingy.services.block_service import BlockService
from pingy.services.events import MessageCreatedEvent
from pingy.utils.datetime_utils import ensure_utc
from pingy.utils.helpers import is_uuid, sanitize_text

if TYPE_CHECKING:
    from pingy.core.websocket import ConnectionManager
    from pingy.services.notification_pipeline import NotificationPipeline

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4000
MAX_CAPTION_LENGTH = 500
DEFAULT_PAGE_SIZE = 40


class MessageService:
    """Service for message operations with business logic."""

    def __init__(
        self,
        db: AsyncSession,
        pipeline: Optional["NotificationPipeline"] = None,
        broadcaster: Optional["ConnectionManager"] = None
    ):
        """
        Initialize message service.

        Args:
            db: Database session
            pipeline: Receives MessageCreatedEvent after each committed insert
            broadcaster: Emits message:new before the pipeline runs
        """
        self.db = db
        self.pipeline = pipeline
        self.broadcaster = broadcaster
        self.message_repo = MessageRepository(db)
        self.reaction_repo = MessageReactionRepository(db)
        self.conversation_repo = ConversationRepository(db)
        self.participant_repo = ConversationParticipantRepository(db)
        self.user_repo = UserRepository(db)
        self.block_service = BlockService(db)

    async def assert_conversation_access(self, conversation_id: str, user_id: str) -> None:
        """
        Ensure the user is a participant of the conversation.

        Raises:
            AccessDenied: If the user is not a participant
        """
        if not await self.participant_repo.is_participant(conversation_id, user_id):
            raise AccessDenied()

    async def resolve_recipient_id(self, conversation_id: str, sender_id: str) -> str:
        """
        Find the other participant of a direct conversation.

        Raises:
            ValidationError: If the conversation has no second participant
        """
        participant_ids = await self.participant_repo.list_participant_ids(conversation_id)
        recipient_id = next((pid for pid in participant_ids if pid != sender_id), None)

        if recipient_id is None:
            raise ValidationError("Conversation recipient not found")
        return recipient_id

    @staticmethod
    def _serialize_message(
        message: Message,
        sender_username: Optional[str],
        reply_to: Optional[Dict[str, Any]] = None,
        reactions: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Flatten a message row with its display extras."""
        return {
            "id": message.id,
            "conversation_id": message.conversation_id,
            "sender_id": message.sender_id,
            "sender_username": sender_username,
            "recipient_id": message.recipient_id,
            "reply_to_message_id": message.reply_to_message_id,
            "reply_to": reply_to,
            "type": MessageType(message.type).value,
            "body": message.body,
            "is_encrypted": message.is_encrypted,
            "media_url": message.media_url,
            "media_name": message.media_name,
            "media_mime": message.media_mime,
            "media_size": message.media_size,
            "voice_duration_ms": message.voice_duration_ms,
            "client_id": message.client_id,
            "created_at": ensure_utc(message.created_at),
            "delivered_at": ensure_utc(message.delivered_at),
            "seen_at": ensure_utc(message.seen_at),
            "reactions": reactions or [],
        }

    async def _enrich(self, message: Message, viewer_id: str) -> Dict[str, Any]:
        """Serialize one message with sender name, reply preview and reactions."""
        usernames = await self.user_repo.get_usernames([message.sender_id])
        previews = await self.message_repo.get_reply_previews(
            [message.reply_to_message_id] if message.reply_to_message_id else []
        )
        reactions = await self.reaction_repo.summarize([message.id], viewer_id)

        return self._serialize_message(
            message,
            usernames.get(message.sender_id),
            reply_to=previews.get(message.reply_to_message_id),
            reactions=reactions.get(message.id),
        )

    async def _normalize_reply_to(
        self,
        conversation_id: str,
        sender_id: str,
        reply_to_message_id: Optional[str]
    ) -> Optional[str]:
        """
        Validate a reply reference.

        Values that are not UUIDs are dropped; a UUID must point at a
        message of the same conversation that the sender can still see.
        """
        if not reply_to_message_id:
            return None

        candidate = str(reply_to_message_id).strip()
        if not is_uuid(candidate):
            return None

        target = await self.message_repo.get_visible_to(candidate, sender_id)
        if target is None or target.conversation_id != conversation_id:
            raise ValidationError("replyToMessageId must reference a message in the same conversation")
        return target.id

    async def create_message(
        self,
        sender_id: str,
        conversation_id: str,
        message_type: MessageType | str = MessageType.TEXT,
        body: Optional[str] = None,
        media_url: Optional[str] = None,
        media_name: Optional[str] = None,
        media_mime: Optional[str] = None,
        media_size: Optional[int] = None,
        voice_duration_ms: Optional[int] = None,
        reply_to_message_id: Optional[str] = None,
        client_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send a new message.

        A retry carrying the same client_id returns the stored message
        without inserting again or notifying anyone. A failed message:new
        broadcast is logged and the notification pipeline still runs.

        Args:
            sender_id: Sender user ID
            conversation_id: Conversation ID
            message_type: Message type
            body: Text body, or caption for media messages
            media_url: Uploaded media location (required for non-text)
            media_name: Original file name
            media_mime: Media MIME type
            media_size: Media size in bytes
            voice_duration_ms: Voice note length
            reply_to_message_id: Message being replied to
            client_id: Client idempotency key

        Returns:
            Serialized message

        Raises:
            AccessDenied: Sender is not a participant, or the pair is blocked
            ValidationError: Missing body or media, bad reply reference,
                or a client_id already spent on a deleted message
        """
        await self.assert_conversation_access(conversation_id, sender_id)
        recipient_id = await self.resolve_recipient_id(conversation_id, sender_id)
        await self.block_service.assert_can_interact(sender_id, recipient_id)

        if client_id:
            existing = await self._find_retried(conversation_id, sender_id, client_id)
            if existing is not None:
                return existing

        try:
            message_type = MessageType(message_type)
        except ValueError:
            raise ValidationError(f"Unsupported message type: {message_type}")

        if message_type == MessageType.TEXT:
            normalized_body = sanitize_text(body, MAX_TEXT_LENGTH)
            if not normalized_body:
                raise ValidationError("Text body is required")
        else:
            normalized_body = sanitize_text(body, MAX_CAPTION_LENGTH) or None
            if not media_url:
                raise ValidationError("Media URL is required for media messages")

        reply_to_id = await self._normalize_reply_to(conversation_id, sender_id, reply_to_message_id)

        try:
            message = await self.message_repo.create(
                conversation_id=conversation_id,
                sender_id=sender_id,
                recipient_id=recipient_id,
                reply_to_message_id=reply_to_id,
                type=message_type,
                body=normalized_body,
                is_encrypted=False,
                media_url=media_url,
                media_name=media_name,
                media_mime=media_mime,
                media_size=media_size,
                voice_duration_ms=voice_duration_ms,
                client_id=client_id,
            )
            await self.conversation_repo.touch_activity(conversation_id, message.created_at)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # A concurrent send with the same client_id won the insert
            existing = await self._find_retried(conversation_id, sender_id, client_id) if client_id else None
            if existing is None:
                raise
            return existing

        logger.info(f"Message {message.id} created in conversation {conversation_id}")
        await invalidate_unread_count_cache(recipient_id)

        serialized = await self._enrich(message, sender_id)

        # message:new goes out before any delivered update the pipeline emits
        if self.broadcaster is not None:
            try:
                await self.broadcaster.emit_message_created(serialized)
            except Exception:
                logger.exception(f"message:new broadcast failed for message {message.id}")
        if self.pipeline is not None:
            self.pipeline.publish(MessageCreatedEvent.from_message(serialized))

        return serialized

    async def _find_retried(
        self,
        conversation_id: str,
        sender_id: str,
        client_id: str
    ) -> Optional[Dict[str, Any]]:
        """
        Look up an earlier send carrying the same client_id.

        Returns:
            The stored message serialized, or None if the key is unused

        Raises:
            ValidationError: The key belongs to a message deleted for everyone
        """
        existing = await self.message_repo.find_by_client_id(conversation_id, sender_id, client_id)
        if existing is None:
            return None
        if existing.deleted_for_everyone_at is not None:
            raise ValidationError("clientId was already used for a deleted message")

        logger.info(f"Duplicate send for client_id {client_id}, returning message {existing.id}")
        return await self._enrich(existing, sender_id)

    async def list_messages(
        self,
        user_id: str,
        conversation_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        before: Optional[datetime] = None,
        after: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """
        Get the newest visible messages of a conversation, oldest first.

        Args:
            user_id: Requesting participant
            conversation_id: Conversation ID
            limit: Page size
            before: Exclusive upper bound on created_at
            after: Inclusive lower bound on created_at

        Returns:
            Serialized messages with reply previews and reactions

        Raises:
            AccessDenied: If the user is not a participant
        """
        await self.assert_conversation_access(conversation_id, user_id)

        rows = await self.message_repo.list_for_participant(
            user_id, conversation_id, limit=limit, before=before, after=after
        )
        message_ids = [message.id for message, _ in rows]
        reply_ids = [message.reply_to_message_id for message, _ in rows if message.reply_to_message_id]

        previews = await self.message_repo.get_reply_previews(reply_ids)
        reactions = await self.reaction_repo.summarize(message_ids, user_id)

        return [
            self._serialize_message(
                message,
                username,
                reply_to=previews.get(message.reply_to_message_id),
                reactions=reactions.get(message.id),
            )
            for message, username in rows
        ]

    async def mark_delivered(
        self,
        recipient_id: str,
        message_ids: Optional[Sequence[str]] = None,
        conversation_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Mark pending messages as delivered to their recipient.

        Args:
            recipient_id: Recipient user ID
            message_ids: Restrict to these messages
            conversation_id: Restrict to one conversation (access checked)

        Returns:
            Rows that transitioned, each with id, conversation_id, sender_id, delivered_at
        """
        if conversation_id:
            await self.assert_conversation_access(conversation_id, recipient_id)

        updates = await self.message_repo.mark_delivered(
            recipient_id, message_ids=message_ids, conversation_id=conversation_id
        )
        await self.db.commit()

        if updates:
            logger.debug(f"Marked {len(updates)} message(s) delivered for {recipient_id}")
        return updates

    async def mark_all_delivered(self, user_id: str) -> List[Dict[str, Any]]:
        """Deliver every pending message of a user that just connected."""
        return await self.mark_delivered(user_id)

    async def mark_seen(
        self,
        recipient_id: str,
        conversation_id: str,
        message_ids: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Mark messages of a conversation as seen.

        Nothing is written when the recipient has read receipts turned off.
        Otherwise the participant's read cursor moves to the newest message
        that transitioned.

        Args:
            recipient_id: Recipient user ID
            conversation_id: Conversation ID
            message_ids: Restrict to these messages

        Returns:
            Rows that transitioned, ordered by creation time

        Raises:
            AccessDenied: If the user is not a participant
        """
        await self.assert_conversation_access(conversation_id, recipient_id)

        if not await self.user_repo.read_receipts_enabled(recipient_id):
            return []

        updates = await self.message_repo.mark_seen(
            recipient_id, conversation_id, message_ids=message_ids
        )

        if updates:
            await self.participant_repo.update_read_cursor(
                conversation_id, recipient_id, updates[-1]["id"]
            )
        await self.db.commit()

        if updates:
            await invalidate_unread_count_cache(recipient_id)
        return updates

    async def count_unread(self, recipient_id: str) -> int:
        """
        Count unseen messages addressed to a user (the push badge).

        Args:
            recipient_id: Recipient user ID

        Returns:
            Unread message count
        """
        cached = await get_cached_unread_count(recipient_id)
        if cached is not None:
            return cached

        count = await self.message_repo.count_unread(recipient_id)
        await cache_unread_count(recipient_id, count)
        return count
