"""
Push subscription service.
Registers and removes the devices a user receives push notifications on.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from pingy.config import Settings, settings as default_settings
from pingy.core.exceptions import ServiceUnavailable, ValidationError
from pingy.repositories.push_subscription_repo import PushSubscriptionRepository
from pingy.utils.helpers import mask_token

logger = logging.getLogger(__name__)


class PushSubscriptionService:
    """Service for the push registration settings surface."""

    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.subscription_repo = PushSubscriptionRepository(db)

    def get_public_key_info(self) -> Dict[str, Any]:
        """
        Describe which push providers are available.

        Returns:
            Dict with enabled (any provider), web_push_enabled and the VAPID
            public key (None without Web Push)
        """
        web_push_enabled = self.settings.web_push_configured
        return {
            "enabled": self.settings.push_configured,
            "web_push_enabled": web_push_enabled,
            "public_key": self.settings.web_push_public_key if web_push_enabled else None,
        }

    async def save_subscription(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: Optional[str] = None
    ) -> None:
        """
        Register a device, replacing the keys of an existing registration.

        Raises:
            ServiceUnavailable: No push provider is configured
        """
        if not self.settings.push_configured:
            raise ServiceUnavailable("Push notifications are not configured on server")

        await self.subscription_repo.upsert(
            user_id=user_id,
            endpoint=endpoint,
            p256dh=p256dh,
            auth=auth,
            user_agent=user_agent[:300] if user_agent else None,
        )
        await self.db.commit()
        logger.info(f"Saved push subscription {mask_token(endpoint, 40)} for user {user_id}")

    async def delete_subscription(self, user_id: str, endpoint: str) -> bool:
        """
        Unregister one of the user's devices.

        Returns:
            True if a registration was removed

        Raises:
            ValidationError: Empty endpoint
        """
        endpoint = (endpoint or "").strip()
        if not endpoint:
            raise ValidationError("Subscription endpoint is required")

        removed = await self.subscription_repo.delete_for_user(user_id, endpoint)
        await self.db.commit()
        return removed
