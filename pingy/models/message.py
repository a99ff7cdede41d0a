"""
Message and MessageReaction models.

Delivery state lives directly on the message row: a direct message has a
single recipient, so delivered_at and seen_at are enough.
"""
import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from pingy.models.base import Base, UUIDMixin
from pingy.utils.datetime_utils import utc_now


class MessageType(str, enum.Enum):
    """Enum for message types."""
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    VOICE = "voice"
    FILE = "file"


class Message(Base, UUIDMixin):
    """
    Message model for all message types.

    Invariant: seen_at is only ever set together with or after delivered_at.
    """

    __tablename__ = "messages"

    # References
    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        doc="Conversation this message belongs to"
    )

    sender_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="User who sent the message"
    )

    recipient_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="The other participant of the conversation"
    )

    reply_to_message_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        doc="Message in the same conversation this one replies to"
    )

    # Content
    type: Mapped[MessageType] = mapped_column(
        SQLEnum(MessageType, name="message_type", native_enum=False,
                values_callable=lambda e: [member.value for member in e]),
        nullable=False,
        doc="Type of message: text, image, video, voice or file"
    )

    body: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Text body, or caption for media messages"
    )

    is_encrypted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Whether body carries an end-to-end encrypted payload"
    )

    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_mime: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    voice_duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    client_id: Mapped[str | None] = mapped_column(
        String(80),
        nullable=True,
        doc="Client-generated idempotency key"
    )

    # Lifecycle
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="When the message was created"
    )

    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the recipient's device first received the message"
    )

    seen_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the recipient read the message"
    )

    deleted_for_everyone_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Unsend timestamp; hides the message from both participants"
    )

    __table_args__ = (
        CheckConstraint("body IS NOT NULL OR media_url IS NOT NULL", name="ck_messages_content"),
    )

    def __repr__(self) -> str:
        preview = self.body[:50] if self.body else f"<{self.type}>"
        return f"<Message(id={self.id}, type={self.type}, body='{preview}')>"


class MessageReaction(Base):
    """
    MessageReaction model - one emoji per user per message.

    Reacting again with another emoji replaces the previous one.
    """

    __tablename__ = "message_reactions"

    message_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True,
        doc="Message ID"
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        doc="User ID"
    )

    emoji: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        doc="Emoji reaction"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<MessageReaction(message_id={self.message_id}, user_id={self.user_id}, emoji={self.emoji})>"


# Indexes for performance
Index("idx_messages_conversation_created", Message.conversation_id, Message.created_at.desc())
Index("idx_messages_recipient_pending", Message.recipient_id, Message.delivered_at, Message.seen_at)
Index("idx_messages_reply_to", Message.reply_to_message_id)
Index("idx_message_reactions_message", MessageReaction.message_id)

# Client retries of the same send resolve to one row
Index(
    "idx_messages_idempotency",
    Message.conversation_id,
    Message.sender_id,
    Message.client_id,
    unique=True,
    postgresql_where=Message.client_id.isnot(None),
    sqlite_where=Message.client_id.isnot(None),
)
