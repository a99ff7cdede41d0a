"""
Reaction service.

A user holds at most one reaction per message: reacting with the same
emoji again removes it, reacting with another emoji replaces it.
"""
import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from pingy.core.exceptions import NotFound
from pingy.repositories.conversation_repo import ConversationParticipantRepository
from pingy.repositories.message_repo import MessageReactionRepository, MessageRepository
from pingy.services.block_service import BlockService

logger = logging.getLogger(__name__)

ALLOWED_REACTIONS = (
    "\U0001F44D",
    "\u2764\ufe0f",
    "\U0001F602",
    "\U0001F62E",
    "\U0001F622",
    "\U0001F525",
    "\U0001F44F",
    "\U0001F64F",
)


class ReactionService:
    """Service for toggling message reactions."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"

    def __init__(self, db: AsyncSession):
        self.db = db
        self.message_repo = MessageRepository(db)
        self.reaction_repo = MessageReactionRepository(db)
        self.participant_repo = ConversationParticipantRepository(db)
        self.block_service = BlockService(db)

    async def toggle_reaction(self, message_id: str, user_id: str, emoji: str) -> Dict[str, Any]:
        """
        Add, replace or remove the user's reaction in one transaction.

        Args:
            message_id: Target message
            user_id: Reacting user
            emoji: Emoji to toggle

        Returns:
            Dict with message_id, conversation_id, reactions (aggregate from
            the user's point of view), action and emoji

        Raises:
            NotFound: Message missing or hidden from the user
            BlockedInteraction: The user and the other participant are blocked
        """
        try:
            message = await self.message_repo.get_visible_to(message_id, user_id)
            if message is None:
                raise NotFound("Message not found")

            participant_ids = await self.participant_repo.list_participant_ids(message.conversation_id)
            peer_id = next((pid for pid in participant_ids if pid != user_id), None)
            if peer_id is not None:
                await self.block_service.assert_can_interact(user_id, peer_id)

            existing_emoji = await self.reaction_repo.get_user_emoji(message_id, user_id)

            if existing_emoji == emoji:
                await self.reaction_repo.remove(message_id, user_id)
                action = self.REMOVED
            else:
                await self.reaction_repo.upsert(message_id, user_id, emoji)
                action = self.UPDATED if existing_emoji is not None else self.ADDED

            summaries = await self.reaction_repo.summarize([message_id], user_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Reaction {action} on message {message_id} by {user_id}")

        return {
            "message_id": message_id,
            "conversation_id": message.conversation_id,
            "reactions": summaries.get(message_id, []),
            "action": action,
            "emoji": emoji,
        }
