"""
Conversation repository for database operations.
Answers membership questions and maintains per-participant read state.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.models.conversation import Conversation, ConversationParticipant
from pingy.repositories.base import BaseRepository
from pingy.utils.datetime_utils import utc_now


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for conversation database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize conversation repository."""
        super().__init__(Conversation, db)

    async def touch_activity(self, conversation_id: str, at: Optional[datetime] = None) -> None:
        """
        Record new activity so conversation lists sort by the latest message.

        Args:
            conversation_id: Conversation ID
            at: Activity time (defaults to now)
        """
        at = at or utc_now()
        await self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(last_message_at=at, updated_at=at)
            .execution_options(synchronize_session=False)
        )


class ConversationParticipantRepository(BaseRepository[ConversationParticipant]):
    """Repository for conversation membership."""

    def __init__(self, db: AsyncSession):
        """Initialize participant repository."""
        super().__init__(ConversationParticipant, db)

    async def get_participant(
        self,
        conversation_id: str,
        user_id: str
    ) -> Optional[ConversationParticipant]:
        """
        Get one membership row.

        Args:
            conversation_id: Conversation ID
            user_id: User ID

        Returns:
            Participant or None if the user is not a member
        """
        result = await self.db.execute(
            select(ConversationParticipant).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def is_participant(self, conversation_id: str, user_id: str) -> bool:
        """Check whether the user belongs to the conversation."""
        return await self.get_participant(conversation_id, user_id) is not None

    async def list_participant_ids(self, conversation_id: str) -> List[str]:
        """
        Get the user IDs of every member of a conversation.

        Args:
            conversation_id: Conversation ID

        Returns:
            Member user IDs in join order
        """
        result = await self.db.execute(
            select(ConversationParticipant.user_id)
            .where(ConversationParticipant.conversation_id == conversation_id)
            .order_by(ConversationParticipant.joined_at)
        )
        return list(result.scalars().all())

    async def update_read_cursor(
        self,
        conversation_id: str,
        user_id: str,
        message_id: str
    ) -> None:
        """
        Move a participant's read cursor to the given message.

        Args:
            conversation_id: Conversation ID
            user_id: Participant user ID
            message_id: Last message the participant has seen
        """
        await self.db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id
            )
            .values(last_read_message_id=message_id)
            .execution_options(synchronize_session=False)
        )
