# src/flock/models/timeline.py
"""Materialized per-user timeline entries."""

from __future__ import annotations

from sqlalchemy import BigInteger, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flock.db.session import Base
from flock.models.post import Post


class TimelineItem(Base):
    """One post as it appears in one user's home feed.

    Rows are written once, by the author's own insert or by fan-out, and never
    updated.
    """

    __tablename__ = "timeline"
    __table_args__ = (UniqueConstraint("user_id", "post_id", name="uq_timeline_user_post"),)

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    post_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
    )

    post: Mapped[Post] = relationship("Post", lazy="joined")
