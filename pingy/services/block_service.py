"""
Block policy shared by messaging and reactions.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from pingy.core.exceptions import BlockedInteraction
from pingy.repositories.user_repo import UserBlockRepository

logger = logging.getLogger(__name__)


class BlockService:
    """Answers whether two users may interact."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.block_repo = UserBlockRepository(db)

    async def assert_can_interact(self, first_user_id: str, second_user_id: str) -> None:
        """
        Ensure neither user has blocked the other.

        Args:
            first_user_id: Acting user
            second_user_id: Other user

        Raises:
            BlockedInteraction: If a block exists in either direction
        """
        if await self.block_repo.is_either_blocked(first_user_id, second_user_id):
            logger.info(f"Blocked interaction between {first_user_id} and {second_user_id}")
            raise BlockedInteraction()
