"""
User model.

Only the profile fields the messaging core reads or writes live here;
authentication and profile editing belong to other services.
"""
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pingy.models.base import Base, UUIDMixin
from pingy.utils.datetime_utils import utc_now


class User(Base, UUIDMixin):
    """User account as seen by the messaging core."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        doc="Display username, used as the push notification title"
    )

    avatar_url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Profile image URL"
    )

    read_receipts_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        doc="When false, seen receipts are never written for this user"
    )

    is_online: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        doc="Last known online state, mirrored from presence"
    )

    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="When the user last disconnected"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        doc="Account creation time"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username})>"
