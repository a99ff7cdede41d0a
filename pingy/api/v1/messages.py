"""
Message API routes.
Provides endpoints for listing and sending messages, delivery and read
receipts, and reactions.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from pingy.config import settings
from pingy.core.database import get_db
from pingy.dependencies import get_connection_manager, get_current_user, get_pipeline
from pingy.schemas.message import (
    MessageCreate,
    MessageEnvelope,
    MessageIdsRequest,
    MessageListResponse,
    MessageStateUpdateResponse,
    ReactionToggleRequest,
    ReactionUpdateResponse,
)
from pingy.services.message_service import DEFAULT_PAGE_SIZE, MessageService
from pingy.services.reaction_service import ReactionService

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


@router.get(
    "/{conversation_id}",
    response_model=MessageListResponse,
    summary="List conversation messages",
    description="Newest messages of a conversation the user can see, returned oldest first."
)
async def list_messages(
    conversation_id: str,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=500, description="Page size"),
    before: Optional[datetime] = Query(None, description="Only messages created before this time"),
    after: Optional[datetime] = Query(None, description="Only messages created at or after this time"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List messages of a conversation.

    - **limit**: 1-500, default 40
    - **before** / **after**: ISO timestamps bounding created_at
    """
    service = MessageService(db)
    messages = await service.list_messages(
        current_user["id"], conversation_id, limit=limit, before=before, after=after
    )
    return {"messages": messages}


@router.post(
    "/{conversation_id}",
    response_model=MessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Send a text message",
    description="Send a text message to a direct conversation. Retries with the same clientId are idempotent."
)
@limiter.limit(f"{settings.rate_limit_messages_per_minute}/minute")
async def send_message(
    request: Request,
    conversation_id: str,
    message_data: MessageCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    pipeline=Depends(get_pipeline),
    connection_manager=Depends(get_connection_manager)
):
    """
    Send a text message.

    - **body**: 1-4000 characters
    - **clientId**: optional idempotency key
    - **replyToMessageId**: optional message of the same conversation
    """
    service = MessageService(db, pipeline=pipeline, broadcaster=connection_manager)
    message = await service.create_message(
        sender_id=current_user["id"],
        conversation_id=conversation_id,
        body=message_data.body,
        reply_to_message_id=message_data.reply_to_message_id,
        client_id=message_data.client_id,
    )
    return {"message": message}


@router.post(
    "/{conversation_id}/delivered",
    response_model=MessageStateUpdateResponse,
    summary="Mark messages delivered"
)
async def mark_delivered(
    conversation_id: str,
    payload: Optional[MessageIdsRequest] = None,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    connection_manager=Depends(get_connection_manager)
):
    """Stamp delivered_at on messages addressed to the current user."""
    service = MessageService(db)
    updates = await service.mark_delivered(
        current_user["id"],
        message_ids=payload.message_ids if payload else None,
        conversation_id=conversation_id,
    )

    if connection_manager is not None:
        await connection_manager.emit_delivered(updates)
    return {"updates": updates}


@router.post(
    "/{conversation_id}/seen",
    response_model=MessageStateUpdateResponse,
    summary="Mark messages seen",
    description="No-op when the current user has read receipts turned off."
)
async def mark_seen(
    conversation_id: str,
    payload: Optional[MessageIdsRequest] = None,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    connection_manager=Depends(get_connection_manager)
):
    """Stamp seen_at (and delivered_at if missing) on the current user's messages."""
    service = MessageService(db)
    updates = await service.mark_seen(
        current_user["id"],
        conversation_id,
        message_ids=payload.message_ids if payload else None,
    )

    if connection_manager is not None:
        await connection_manager.emit_seen(updates)
    return {"updates": updates}


@router.put(
    "/{message_id}/reaction",
    response_model=ReactionUpdateResponse,
    summary="Toggle a reaction",
    description="Same emoji removes the reaction, another emoji replaces it."
)
async def toggle_reaction(
    message_id: str,
    reaction_data: ReactionToggleRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    connection_manager=Depends(get_connection_manager)
):
    """Toggle the current user's reaction on a message."""
    service = ReactionService(db)
    update = await service.toggle_reaction(message_id, current_user["id"], reaction_data.emoji)

    if connection_manager is not None:
        await connection_manager.emit_reaction(update, current_user["id"])
    return {"update": update}
