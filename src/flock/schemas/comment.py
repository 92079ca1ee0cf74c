"""Comment-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from .user import UserOut


class CommentCreate(BaseModel):
    """Schema for commenting on a post."""

    content: str = Field(..., description="Comment body, up to 480 characters")


class CommentOut(BaseModel):
    """Schema for comment information returned by the API."""

    id: int
    post_id: int
    content: str
    likes_count: int
    created_at: datetime
    user: UserOut | None = None
    mine: bool = False
    liked: bool = False


class ToggleLikeOut(BaseModel):
    """State of a like edge right after it was toggled."""

    liked: bool
    likes_count: int
