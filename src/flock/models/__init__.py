# src/flock/models/__init__.py
"""SQLAlchemy models for the Flock application."""

from .comment import Comment, CommentLike
from .follow import Follow
from .notification import Notification
from .post import Post, PostLike, PostSubscription
from .timeline import TimelineItem
from .user import User

__all__ = [
    "Comment", "CommentLike",
    "Follow",
    "Notification",
    "Post", "PostLike", "PostSubscription",
    "TimelineItem",
    "User",
]
