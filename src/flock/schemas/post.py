"""Post and timeline Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from .user import UserOut


class PostCreate(BaseModel):
    """Schema for publishing a new post.

    Length rules are enforced by the service so that direct callers get the
    same validation as HTTP clients.
    """

    content: str = Field(..., description="Post body, up to 480 characters")
    spoiler_of: str | None = Field(None, description="Optional spoiler label, up to 64 characters")
    nsfw: bool = Field(False, description="Marks adult content")


class PostOut(BaseModel):
    """Schema for post information returned by the API."""

    id: int
    content: str
    spoiler_of: str | None = None
    nsfw: bool
    likes_count: int
    comments_count: int
    created_at: datetime
    user: UserOut | None = None
    mine: bool = False
    liked: bool = False
    subscribed: bool = False


class TimelineItemOut(BaseModel):
    """A post as it appears in one user's timeline."""

    id: int
    post: PostOut


class ToggleSubscriptionOut(BaseModel):
    """State of a post subscription right after it was toggled."""

    subscribed: bool
