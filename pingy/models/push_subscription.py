"""
PushSubscription model.

One row per device registration. Web Push rows carry the browser's
endpoint URL and encryption keys; iOS rows use an ``apns://<token>``
endpoint with placeholder keys.
"""
from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pingy.models.base import Base, UUIDMixin, TimestampMixin


class PushSubscription(Base, UUIDMixin, TimestampMixin):
    """Device registration for push notifications."""

    __tablename__ = "user_push_subscriptions"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owner of the device"
    )

    endpoint: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Web Push endpoint URL or apns://<device token>"
    )

    p256dh: Mapped[str] = mapped_column(Text, nullable=False)
    auth: Mapped[str] = mapped_column(Text, nullable=False)

    user_agent: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Registering client's user agent"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscription_user_endpoint"),
    )

    def __repr__(self) -> str:
        return f"<PushSubscription(id={self.id}, user_id={self.user_id})>"


Index("idx_user_push_subscriptions_user", PushSubscription.user_id)
