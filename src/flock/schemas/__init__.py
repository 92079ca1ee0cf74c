# src/flock/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .comment import CommentCreate, CommentOut, ToggleLikeOut
from .notification import NotificationOut, UnreadOut
from .post import PostCreate, PostOut, TimelineItemOut, ToggleSubscriptionOut
from .user import LoginOut, LoginRequest, ToggleFollowOut, UserCreate, UserOut, UserProfileOut

__all__ = [
    "CommentCreate", "CommentOut", "ToggleLikeOut",
    "NotificationOut", "UnreadOut",
    "PostCreate", "PostOut", "TimelineItemOut", "ToggleSubscriptionOut",
    "LoginOut", "LoginRequest", "ToggleFollowOut", "UserCreate", "UserOut", "UserProfileOut",
]
