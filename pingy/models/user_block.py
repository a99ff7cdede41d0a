"""
UserBlock model for user blocking functionality.

A block in either direction stops the pair from messaging or reacting.
"""
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from pingy.models.base import Base
from pingy.utils.datetime_utils import utc_now


class UserBlock(Base):
    """UserBlock model - tracks which users have blocked each other."""

    __tablename__ = "user_blocks"

    blocker_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        doc="User who is blocking"
    )

    blocked_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        doc="User who is being blocked"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="When the block was created"
    )

    __table_args__ = (
        CheckConstraint("blocker_id <> blocked_id", name="ck_user_blocks_not_self"),
    )

    def __repr__(self) -> str:
        return f"<UserBlock(blocker_id={self.blocker_id}, blocked_id={self.blocked_id})>"


Index("idx_user_blocks_blocked", UserBlock.blocked_id)
