"""
Repository layer for database operations.
Provides clean abstraction over SQLAlchemy queries.
"""
from pingy.repositories.base import BaseRepository
from pingy.repositories.conversation_repo import ConversationRepository, ConversationParticipantRepository
from pingy.repositories.message_repo import MessageRepository, MessageReactionRepository
from pingy.repositories.push_subscription_repo import PushSubscriptionRepository
from pingy.repositories.user_repo import UserRepository, UserBlockRepository

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "ConversationParticipantRepository",
    "MessageRepository",
    "MessageReactionRepository",
    "PushSubscriptionRepository",
    "UserRepository",
    "UserBlockRepository",
]
