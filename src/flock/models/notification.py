# src/flock/models/notification.py
"""Aggregated activity notifications."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from flock.db.session import Base
from flock.db.time import utcnow

NOTIFICATION_TYPE_FOLLOW = "follow"
NOTIFICATION_TYPE_COMMENT = "comment"
NOTIFICATION_TYPE_MENTION = "mention"

NOTIFICATION_TYPES = (
    NOTIFICATION_TYPE_FOLLOW,
    NOTIFICATION_TYPE_COMMENT,
    NOTIFICATION_TYPE_MENTION,
)


class Notification(Base):
    """Activity merged per (recipient, type, subject post).

    ``actors`` holds usernames, most recent first, without duplicates. At most
    one unread row exists per key; once read, the next event opens a new row.
    """

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_id_issued_at", "user_id", "issued_at"),)

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    actors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=True,
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


# Follow notifications have no subject post; coalesce so NULLs still collide.
Index(
    "uq_notifications_unread_key",
    Notification.user_id,
    Notification.type,
    func.coalesce(Notification.post_id, 0),
    unique=True,
    postgresql_where=Notification.read.is_(False),
    sqlite_where=Notification.read.is_(False),
)
