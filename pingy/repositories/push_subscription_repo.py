"""
Push subscription repository for database operations.
Stores Web Push and APNs device registrations.
"""
from typing import List, Optional

from sqlalchemy import delete, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.models.push_subscription import PushSubscription
from pingy.repositories.base import BaseRepository
from pingy.utils.datetime_utils import utc_now


class PushSubscriptionRepository(BaseRepository[PushSubscription]):
    """Repository for push subscription database operations."""

    def __init__(self, db: AsyncSession):
        """Initialize push subscription repository."""
        super().__init__(PushSubscription, db)

    async def list_for_user(self, user_id: str) -> List[PushSubscription]:
        """
        Get every device registration of a user, most recently updated first.

        Args:
            user_id: User ID

        Returns:
            List of subscriptions
        """
        result = await self.db.execute(
            select(PushSubscription)
            .where(PushSubscription.user_id == user_id)
            .order_by(desc(PushSubscription.updated_at))
        )
        return list(result.scalars().all())

    async def get_for_user(self, user_id: str, endpoint: str) -> Optional[PushSubscription]:
        """Get one registration by owner and endpoint."""
        result = await self.db.execute(
            select(PushSubscription).where(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: Optional[str] = None
    ) -> PushSubscription:
        """
        Register a device, refreshing keys if the endpoint is already known.

        Args:
            user_id: Owner user ID
            endpoint: Web Push URL or apns://<token>
            p256dh: Client public key
            auth: Client auth secret
            user_agent: Registering client's user agent

        Returns:
            Stored subscription
        """
        subscription = await self.get_for_user(user_id, endpoint)

        if subscription is None:
            return await self.create(
                user_id=user_id,
                endpoint=endpoint,
                p256dh=p256dh,
                auth=auth,
                user_agent=user_agent
            )

        subscription.p256dh = p256dh
        subscription.auth = auth
        subscription.user_agent = user_agent
        subscription.updated_at = utc_now()
        await self.db.flush()
        return subscription

    async def delete_for_user(self, user_id: str, endpoint: str) -> bool:
        """
        Remove one of the user's own registrations.

        Returns:
            True if a row was deleted
        """
        result = await self.db.execute(
            delete(PushSubscription).where(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint
            )
        )
        return result.rowcount > 0

    async def delete_by_endpoint(self, endpoint: str) -> int:
        """
        Remove every registration of an endpoint the provider reported as gone.

        Args:
            endpoint: Subscription endpoint

        Returns:
            Number of deleted rows
        """
        result = await self.db.execute(
            delete(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )
        return result.rowcount
