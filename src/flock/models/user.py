# src/flock/models/user.py
"""SQLAlchemy model for user accounts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from flock.core.settings import settings
from flock.db.session import Base
from flock.db.time import utcnow


class User(Base):
    """Account identified by a unique handle.

    ``followers_count`` and ``followees_count`` are denormalized copies of the
    cardinality of the follow relation and only move together with it.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(18), unique=True, nullable=False)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    followers_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    followees_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    @property
    def avatar_url(self) -> str | None:
        """Return the public avatar URL, if the user uploaded one."""
        if self.avatar is None:
            return None
        return settings.avatars_url_prefix + self.avatar
