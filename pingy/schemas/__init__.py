"""
Pydantic schema exports.
Provides request/response models for API endpoints.
"""
from pingy.schemas.message import (
    MessageCreate,
    MessageEnvelope,
    MessageIdsRequest,
    MessageListResponse,
    MessageResponse,
    MessageStateUpdate,
    MessageStateUpdateResponse,
    ReactionSummary,
    ReactionToggleRequest,
    ReactionUpdate,
    ReactionUpdateResponse,
    ReplyPreview,
)
from pingy.schemas.push import (
    OkResponse,
    PushKeys,
    PushPublicKeyResponse,
    PushSubscriptionDelete,
    PushSubscriptionPayload,
    PushSubscriptionSave,
)

__all__ = [
    "MessageCreate",
    "MessageEnvelope",
    "MessageIdsRequest",
    "MessageListResponse",
    "MessageResponse",
    "MessageStateUpdate",
    "MessageStateUpdateResponse",
    "ReactionSummary",
    "ReactionToggleRequest",
    "ReactionUpdate",
    "ReactionUpdateResponse",
    "ReplyPreview",
    "OkResponse",
    "PushKeys",
    "PushPublicKeyResponse",
    "PushSubscriptionDelete",
    "PushSubscriptionPayload",
    "PushSubscriptionSave",
]
