"""
User repository for database operations.
Handles the profile flags the messaging core depends on and user blocks.
"""
from typing import Dict, List, Sequence

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.models.user import User
from pingy.models.user_block import UserBlock
from pingy.repositories.base import BaseRepository
from pingy.utils.datetime_utils import utc_now


class UserRepository(BaseRepository[User]):
    """Repository for user database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize user repository."""
        super().__init__(User, db)

    async def read_receipts_enabled(self, user_id: str) -> bool:
        """
        Check the user's read receipt preference.

        Args:
            user_id: User ID

        Returns:
            False for unknown users or users who turned receipts off
        """
        result = await self.db.execute(
            select(User.read_receipts_enabled).where(User.id == user_id)
        )
        return bool(result.scalar_one_or_none())

    async def get_usernames(self, user_ids: Sequence[str]) -> Dict[str, str]:
        """
        Resolve usernames for a set of users.

        Args:
            user_ids: User IDs

        Returns:
            Mapping of user ID to username
        """
        if not user_ids:
            return {}

        result = await self.db.execute(
            select(User.id, User.username).where(User.id.in_(list(set(user_ids))))
        )
        return {user_id: username for user_id, username in result.all()}

    async def set_online(self, user_id: str, is_online: bool) -> None:
        """
        Persist the user's online flag; going offline also stamps last_seen.

        Args:
            user_id: User ID
            is_online: New online state
        """
        values = {"is_online": is_online}
        if not is_online:
            values["last_seen"] = utc_now()

        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )


class UserBlockRepository(BaseRepository[UserBlock]):
    """Repository for user blocks."""

    def __init__(self, db: AsyncSession):
        """Initialize block repository."""
        super().__init__(UserBlock, db)

    async def is_either_blocked(self, first_user_id: str, second_user_id: str) -> bool:
        """
        Check for a block in either direction between two users.

        Args:
            first_user_id: One user
            second_user_id: The other user

        Returns:
            True if either user has blocked the other
        """
        result = await self.db.execute(
            select(UserBlock.blocker_id).where(
                or_(
                    and_(UserBlock.blocker_id == first_user_id, UserBlock.blocked_id == second_user_id),
                    and_(UserBlock.blocker_id == second_user_id, UserBlock.blocked_id == first_user_id)
                )
            ).limit(1)
        )
        return result.first() is not None

    async def list_hidden_user_ids(self, viewer_id: str) -> List[str]:
        """
        Get users whose presence the viewer must not see.

        Any user in a block relationship with the viewer, in either direction.

        Args:
            viewer_id: Viewing user ID

        Returns:
            User IDs to hide
        """
        result = await self.db.execute(
            select(UserBlock.blocker_id, UserBlock.blocked_id).where(
                or_(UserBlock.blocker_id == viewer_id, UserBlock.blocked_id == viewer_id)
            )
        )
        return [
            blocked_id if blocker_id == viewer_id else blocker_id
            for blocker_id, blocked_id in result.all()
        ]
