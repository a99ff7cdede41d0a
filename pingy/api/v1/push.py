"""
Push notification API routes.
Lets clients discover push support and register or remove their devices.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.core.database import get_db
from pingy.dependencies import get_current_user
from pingy.schemas.push import (
    OkResponse,
    PushPublicKeyResponse,
    PushSubscriptionDelete,
    PushSubscriptionSave,
)
from pingy.services.push_subscription_service import PushSubscriptionService

router = APIRouter()


@router.get("/public-key", response_model=PushPublicKeyResponse)
async def get_push_public_key(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get push availability and the VAPID public key.

    **Authentication**: Required
    """
    return PushSubscriptionService(db).get_public_key_info()


@router.post("/subscriptions", response_model=OkResponse)
async def save_push_subscription(
    request: Request,
    payload: PushSubscriptionSave,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a Web Push subscription or an APNs device.

    **Returns**: 503 when no push provider is configured
    """
    subscription = payload.subscription
    await PushSubscriptionService(db).save_subscription(
        user_id=current_user["id"],
        endpoint=subscription.endpoint,
        p256dh=subscription.keys.p256dh,
        auth=subscription.keys.auth,
        user_agent=request.headers.get("user-agent"),
    )
    return {"ok": True}


@router.delete("/subscriptions", response_model=OkResponse)
async def delete_push_subscription(
    payload: PushSubscriptionDelete,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove one of the current user's devices."""
    await PushSubscriptionService(db).delete_subscription(current_user["id"], payload.endpoint)
    return {"ok": True}
