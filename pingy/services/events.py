"""
Domain events emitted after a write commits.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class MessageCreatedEvent:
    """A new message row is durable; delivery and push may follow."""

    message_id: str
    conversation_id: str
    sender_id: str
    recipient_id: str
    type: str
    sender_username: Optional[str] = None
    body: Optional[str] = None
    media_name: Optional[str] = None
    is_encrypted: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "MessageCreatedEvent":
        """Build the event from a serialized message dict."""
        return cls(
            message_id=message["id"],
            conversation_id=message["conversation_id"],
            sender_id=message["sender_id"],
            recipient_id=message["recipient_id"],
            type=message["type"],
            sender_username=message.get("sender_username"),
            body=message.get("body"),
            media_name=message.get("media_name"),
            is_encrypted=message.get("is_encrypted", False),
            created_at=message.get("created_at"),
        )
