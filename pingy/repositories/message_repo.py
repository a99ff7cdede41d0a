"""
Message repository for database operations.
Handles queries and delivery state transitions for messages and reactions.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, case, delete, desc, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.models.conversation import ConversationParticipant
from pingy.models.message import Message, MessageReaction, MessageType
from pingy.models.user import User
from pingy.repositories.base import BaseRepository
from pingy.utils.datetime_utils import ensure_utc, utc_now


def _row_to_dict(row) -> Dict[str, Any]:
    """RETURNING row as a dict with UTC-aware timestamps."""
    return {
        key: ensure_utc(value) if isinstance(value, datetime) else value
        for key, value in row._mapping.items()
    }


class MessageRepository(BaseRepository[Message]):
    """Repository for message database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize message repository."""
        super().__init__(Message, db)

    async def get_visible_to(self, message_id: str, user_id: str) -> Optional[Message]:
        """
        Get a message the given participant can currently see.

        Args:
            message_id: Message ID
            user_id: Viewing participant

        Returns:
            Message, or None if missing, unsent, cleared or not in a
            conversation of this user
        """
        result = await self.db.execute(
            select(Message)
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id
                )
            )
            .where(
                Message.id == message_id,
                Message.deleted_for_everyone_at.is_(None),
                or_(
                    ConversationParticipant.deleted_at.is_(None),
                    Message.created_at > ConversationParticipant.deleted_at
                )
            )
        )
        return result.scalar_one_or_none()

    async def find_by_client_id(
        self,
        conversation_id: str,
        sender_id: str,
        client_id: str
    ) -> Optional[Message]:
        """
        Find a previously stored message by its idempotency key.

        Messages deleted for everyone are returned too; they still hold
        the key in the unique index.

        Args:
            conversation_id: Conversation ID
            sender_id: Sender user ID
            client_id: Client-generated key

        Returns:
            Existing message or None
        """
        result = await self.db.execute(
            select(Message).where(
                Message.conversation_id == conversation_id,
                Message.sender_id == sender_id,
                Message.client_id == client_id
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_participant(
        self,
        user_id: str,
        conversation_id: str,
        limit: int = 40,
        before: Optional[datetime] = None,
        after: Optional[datetime] = None
    ) -> List[Tuple[Message, str]]:
        """
        Get the newest visible messages of a conversation for one participant.

        A message is hidden if it was deleted for everyone or was created
        before the participant cleared the conversation.

        Args:
            user_id: Viewing participant
            conversation_id: Conversation ID
            limit: Maximum number of messages
            before: Only messages created strictly before this time
            after: Only messages created at or after this time

        Returns:
            (message, sender username) pairs, oldest first
        """
        query = (
            select(Message, User.username)
            .join(User, User.id == Message.sender_id)
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id
                )
            )
            .where(
                Message.conversation_id == conversation_id,
                Message.deleted_for_everyone_at.is_(None),
                or_(
                    ConversationParticipant.deleted_at.is_(None),
                    Message.created_at > ConversationParticipant.deleted_at
                )
            )
        )

        if before is not None:
            query = query.where(Message.created_at < ensure_utc(before))
        if after is not None:
            query = query.where(Message.created_at >= ensure_utc(after))

        query = query.order_by(desc(Message.created_at), desc(Message.id)).limit(limit)

        result = await self.db.execute(query)
        rows = [(message, username) for message, username in result.all()]
        rows.reverse()
        return rows

    async def get_reply_previews(self, message_ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """
        Load the quoted messages shown above replies.

        Args:
            message_ids: IDs referenced by reply_to_message_id

        Returns:
            Mapping of message ID to preview fields (deleted targets are omitted)
        """
        if not message_ids:
            return {}

        result = await self.db.execute(
            select(Message, User.username)
            .join(User, User.id == Message.sender_id)
            .where(
                Message.id.in_(list(set(message_ids))),
                Message.deleted_for_everyone_at.is_(None)
            )
        )

        return {
            message.id: {
                "id": message.id,
                "sender_id": message.sender_id,
                "sender_username": username,
                "type": MessageType(message.type).value,
                "body": message.body,
                "is_encrypted": message.is_encrypted,
                "media_name": message.media_name,
                "created_at": ensure_utc(message.created_at),
            }
            for message, username in result.all()
        }

    async def mark_delivered(
        self,
        recipient_id: str,
        message_ids: Optional[Sequence[str]] = None,
        conversation_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Stamp delivered_at on pending messages in one conditional UPDATE.

        Rows that already carry delivered_at are never touched, so concurrent
        callers each see only the rows they transitioned.

        Args:
            recipient_id: Recipient user ID
            message_ids: Restrict to these messages (None or empty means all)
            conversation_id: Restrict to one conversation

        Returns:
            Updated rows as dicts with id, conversation_id, sender_id, delivered_at
        """
        stmt = update(Message).where(
            Message.recipient_id == recipient_id,
            Message.deleted_for_everyone_at.is_(None),
            Message.delivered_at.is_(None)
        )

        if message_ids:
            stmt = stmt.where(Message.id.in_(list(message_ids)))
        if conversation_id:
            stmt = stmt.where(Message.conversation_id == conversation_id)

        stmt = (
            stmt.values(delivered_at=utc_now())
            .returning(
                Message.id,
                Message.conversation_id,
                Message.sender_id,
                Message.delivered_at
            )
            .execution_options(synchronize_session=False)
        )

        result = await self.db.execute(stmt)
        return [_row_to_dict(row) for row in result.all()]

    async def mark_seen(
        self,
        recipient_id: str,
        conversation_id: str,
        message_ids: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Stamp seen_at on unseen messages in one conditional UPDATE.

        delivered_at is filled in the same statement when it is still empty,
        so a seen message is always a delivered one.

        Args:
            recipient_id: Recipient user ID
            conversation_id: Conversation ID
            message_ids: Restrict to these messages (None or empty means all)

        Returns:
            Updated rows ordered by creation time, as dicts with
            id, conversation_id, sender_id, seen_at, delivered_at, created_at
        """
        now = utc_now()

        stmt = update(Message).where(
            Message.recipient_id == recipient_id,
            Message.conversation_id == conversation_id,
            Message.deleted_for_everyone_at.is_(None),
            Message.seen_at.is_(None)
        )

        if message_ids:
            stmt = stmt.where(Message.id.in_(list(message_ids)))

        stmt = (
            stmt.values(
                seen_at=now,
                delivered_at=func.coalesce(Message.delivered_at, now)
            )
            .returning(
                Message.id,
                Message.conversation_id,
                Message.sender_id,
                Message.seen_at,
                Message.delivered_at,
                Message.created_at
            )
            .execution_options(synchronize_session=False)
        )

        result = await self.db.execute(stmt)
        rows = [_row_to_dict(row) for row in result.all()]
        rows.sort(key=lambda row: (row["created_at"], row["id"]))
        return rows

    async def count_unread(self, recipient_id: str) -> int:
        """
        Count messages addressed to a user that have not been seen.

        Args:
            recipient_id: Recipient user ID

        Returns:
            Unread message count
        """
        result = await self.db.execute(
            select(func.count()).select_from(Message).where(
                Message.recipient_id == recipient_id,
                Message.deleted_for_everyone_at.is_(None),
                Message.seen_at.is_(None)
            )
        )
        return result.scalar() or 0


class MessageReactionRepository(BaseRepository[MessageReaction]):
    """Repository for message reactions (one row per user per message)."""

    def __init__(self, db: AsyncSession):
        """Initialize reaction repository."""
        super().__init__(MessageReaction, db)

    async def get_user_emoji(self, message_id: str, user_id: str) -> Optional[str]:
        """
        Get the emoji a user currently has on a message.

        Args:
            message_id: Message ID
            user_id: User ID

        Returns:
            Emoji or None if the user has not reacted
        """
        result = await self.db.execute(
            select(MessageReaction.emoji).where(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, message_id: str, user_id: str, emoji: str) -> None:
        """
        Insert a reaction or replace the user's existing emoji.

        Uses INSERT .. ON CONFLICT (message_id, user_id) DO UPDATE so two
        concurrent toggles by the same user serialize on the primary key.

        Args:
            message_id: Message ID
            user_id: User ID
            emoji: New emoji
        """
        now = utc_now()
        dialect = self.db.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert

        stmt = insert(MessageReaction).values(
            message_id=message_id,
            user_id=user_id,
            emoji=emoji,
            created_at=now,
            updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[MessageReaction.message_id, MessageReaction.user_id],
            set_={"emoji": emoji, "updated_at": now}
        )
        await self.db.execute(stmt)

    async def remove(self, message_id: str, user_id: str) -> bool:
        """
        Remove a user's reaction.

        Returns:
            True if a row was deleted
        """
        result = await self.db.execute(
            delete(MessageReaction).where(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id
            )
        )
        return result.rowcount > 0

    async def summarize(
        self,
        message_ids: Sequence[str],
        viewer_id: str
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Aggregate reactions per emoji from one viewer's point of view.

        Args:
            message_ids: Messages to summarize
            viewer_id: User whose own reaction sets reacted_by_me

        Returns:
            Mapping of message ID to [{emoji, count, reacted_by_me}],
            sorted by count descending then emoji ascending
        """
        if not message_ids:
            return {}

        count_col = func.count().label("count")
        reacted_col = func.max(
            case((MessageReaction.user_id == viewer_id, 1), else_=0)
        ).label("reacted_by_me")

        result = await self.db.execute(
            select(MessageReaction.message_id, MessageReaction.emoji, count_col, reacted_col)
            .where(MessageReaction.message_id.in_(list(set(message_ids))))
            .group_by(MessageReaction.message_id, MessageReaction.emoji)
            .order_by(MessageReaction.message_id, desc(count_col), MessageReaction.emoji)
        )

        summaries: Dict[str, List[Dict[str, Any]]] = {}
        for message_id, emoji, count, reacted_by_me in result.all():
            summaries.setdefault(message_id, []).append({
                "emoji": emoji,
                "count": int(count),
                "reacted_by_me": bool(reacted_by_me),
            })
        return summaries
