"""
Service layer exports.
Provides business logic for the application.
"""
from pingy.services.block_service import BlockService
from pingy.services.message_service import MessageService
from pingy.services.notification_pipeline import NotificationPipeline
from pingy.services.reaction_service import ReactionService

__all__ = [
    "BlockService",
    "MessageService",
    "NotificationPipeline",
    "ReactionService",
]
