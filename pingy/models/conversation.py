"""
Conversation and ConversationParticipant models.

Only direct (one-to-one) conversations exist.
"""
import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from pingy.models.base import Base, UUIDMixin, TimestampMixin
from pingy.utils.datetime_utils import utc_now


class ConversationType(str, enum.Enum):
    """Enum for conversation types."""
    DIRECT = "direct"


class Conversation(Base, UUIDMixin, TimestampMixin):
    """Conversation between two users."""

    __tablename__ = "conversations"

    type: Mapped[ConversationType] = mapped_column(
        SQLEnum(ConversationType, name="conversation_type", native_enum=False,
                values_callable=lambda e: [member.value for member in e]),
        default=ConversationType.DIRECT,
        nullable=False,
        doc="Type of conversation"
    )

    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Timestamp of the newest message, touched on every send"
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, type={self.type})>"


class ConversationParticipant(Base):
    """
    Membership of a user in a conversation.

    Tracks the read cursor and the per-user "delete conversation" marker:
    messages created before deleted_at are hidden from that participant.
    """

    __tablename__ = "conversation_participants"

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
        doc="Conversation ID"
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        doc="User ID"
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="When the user joined the conversation"
    )

    last_read_message_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
        doc="Last message this participant has seen"
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When this participant cleared the conversation"
    )

    def __repr__(self) -> str:
        return (
            f"<ConversationParticipant(conversation_id={self.conversation_id}, "
            f"user_id={self.user_id})>"
        )


Index("idx_participants_user", ConversationParticipant.user_id)
