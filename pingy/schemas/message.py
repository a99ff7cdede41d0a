"""
Pydantic schemas for message requests and responses.
Handles validation for message-related API endpoints.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pingy.models.message import MessageType
from pingy.services.reaction_service import ALLOWED_REACTIONS


# ============================================================================
# Request Schemas
# ============================================================================

class MessageCreate(BaseModel):
    """Schema for sending a text message."""

    body: str = Field(..., min_length=1, max_length=4000, description="Message text")
    client_id: Optional[str] = Field(
        None, alias="clientId", min_length=5, max_length=80,
        description="Client idempotency key; retries with the same key return the stored message"
    )
    reply_to_message_id: Optional[str] = Field(
        None, alias="replyToMessageId", max_length=120, description="ID of message being replied to"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "body": "Hello, how are you?",
                "clientId": "c-1718000000000",
                "replyToMessageId": None
            }
        }
    )

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        """Ensure body is not empty or whitespace."""
        if len(v.strip()) == 0:
            raise ValueError("Body cannot be empty or whitespace only")
        return v


class MessageIdsRequest(BaseModel):
    """Schema for marking messages delivered or seen."""

    message_ids: Optional[List[str]] = Field(
        None, alias="messageIds", max_length=200,
        description="Restrict to these messages; omit for the whole conversation"
    )

    model_config = ConfigDict(populate_by_name=True)


class ReactionToggleRequest(BaseModel):
    """Schema for toggling a reaction."""

    emoji: str = Field(..., description="One of the supported reaction emoji")

    @field_validator("emoji")
    @classmethod
    def validate_emoji(cls, v: str) -> str:
        """Only the fixed reaction palette is accepted."""
        v = v.strip()
        if v not in ALLOWED_REACTIONS:
            raise ValueError("Unsupported reaction emoji")
        return v


# ============================================================================
# Response Schemas
# ============================================================================

_response_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ReactionSummary(BaseModel):
    """Reaction count for one emoji, from the viewer's point of view."""

    emoji: str
    count: int
    reacted_by_me: bool = Field(serialization_alias="reactedByMe")

    model_config = _response_config


class ReplyPreview(BaseModel):
    """The quoted message shown above a reply."""

    id: str
    sender_id: str = Field(serialization_alias="senderId")
    sender_username: Optional[str] = Field(None, serialization_alias="senderUsername")
    type: MessageType
    body: Optional[str] = None
    is_encrypted: bool = Field(False, serialization_alias="isEncrypted")
    media_name: Optional[str] = Field(None, serialization_alias="mediaName")
    created_at: datetime = Field(serialization_alias="createdAt")

    model_config = _response_config


class MessageResponse(BaseModel):
    """Schema for message response with full details."""

    id: str
    conversation_id: str = Field(serialization_alias="conversationId")
    sender_id: str = Field(serialization_alias="senderId")
    sender_username: Optional[str] = Field(None, serialization_alias="senderUsername")
    recipient_id: str = Field(serialization_alias="recipientId")
    reply_to_message_id: Optional[str] = Field(None, serialization_alias="replyToMessageId")
    reply_to: Optional[ReplyPreview] = Field(None, serialization_alias="replyTo")
    type: MessageType
    body: Optional[str] = None
    is_encrypted: bool = Field(False, serialization_alias="isEncrypted")
    media_url: Optional[str] = Field(None, serialization_alias="mediaUrl")
    media_name: Optional[str] = Field(None, serialization_alias="mediaName")
    media_mime: Optional[str] = Field(None, serialization_alias="mediaMime")
    media_size: Optional[int] = Field(None, serialization_alias="mediaSize")
    voice_duration_ms: Optional[int] = Field(None, serialization_alias="voiceDurationMs")
    client_id: Optional[str] = Field(None, serialization_alias="clientId")
    created_at: datetime = Field(serialization_alias="createdAt")
    delivered_at: Optional[datetime] = Field(None, serialization_alias="deliveredAt")
    seen_at: Optional[datetime] = Field(None, serialization_alias="seenAt")
    reactions: List[ReactionSummary] = Field(default_factory=list)

    model_config = _response_config


class MessageEnvelope(BaseModel):
    """Single message response."""

    message: MessageResponse


class MessageListResponse(BaseModel):
    """Page of messages, oldest first."""

    messages: List[MessageResponse]


class MessageStateUpdate(BaseModel):
    """One message whose delivered or seen state changed."""

    id: str
    conversation_id: str = Field(serialization_alias="conversationId")
    sender_id: str = Field(serialization_alias="senderId")
    delivered_at: Optional[datetime] = Field(None, serialization_alias="deliveredAt")
    seen_at: Optional[datetime] = Field(None, serialization_alias="seenAt")

    model_config = _response_config


class MessageStateUpdateResponse(BaseModel):
    """Rows that transitioned."""

    updates: List[MessageStateUpdate]


class ReactionUpdate(BaseModel):
    """Result of a reaction toggle."""

    message_id: str = Field(serialization_alias="messageId")
    conversation_id: str = Field(serialization_alias="conversationId")
    reactions: List[ReactionSummary]
    action: str = Field(description="added, updated or removed")
    emoji: str

    model_config = _response_config


class ReactionUpdateResponse(BaseModel):
    """Reaction toggle response."""

    update: ReactionUpdate
