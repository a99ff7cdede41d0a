"""
SQLAlchemy models for the Pingy messaging server.

All models must be imported here so Base.metadata knows every table.
"""

# Import Base first
from pingy.models.base import Base, TimestampMixin, UUIDMixin

from pingy.models.user import User
from pingy.models.conversation import Conversation, ConversationParticipant, ConversationType
from pingy.models.message import Message, MessageReaction, MessageType
from pingy.models.user_block import UserBlock
from pingy.models.push_subscription import PushSubscription

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # User
    "User",
    # Conversations
    "Conversation",
    "ConversationParticipant",
    "ConversationType",
    # Messages
    "Message",
    "MessageReaction",
    "MessageType",
    # User blocking
    "UserBlock",
    # Push
    "PushSubscription",
]
