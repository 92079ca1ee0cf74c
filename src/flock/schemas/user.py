"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserCreate(BaseModel):
    """Schema for signing up a new account."""

    email: str = Field(..., description="Contact address, must be unique")
    username: str = Field(..., description="Public handle, must be unique")


class LoginRequest(BaseModel):
    """Schema for passwordless login submissions."""

    email: str = Field(..., description="Address the account was created with")


class UserOut(BaseModel):
    """Compact user representation embedded in posts, comments and logins."""

    id: int | None = None
    username: str
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UserProfileOut(BaseModel):
    """Public profile with relationship flags relative to the viewer.

    ``id`` and ``email`` are only filled in when the viewer owns the profile.
    """

    id: int | None = None
    email: str | None = None
    username: str
    avatar_url: str | None = None
    followers_count: int
    followees_count: int
    me: bool = False
    following: bool = False
    followeed: bool = False


class LoginOut(BaseModel):
    """Response returned after successful login."""

    token: str = Field(..., description="Bearer token")
    expires_at: datetime
    user: UserOut


class ToggleFollowOut(BaseModel):
    """State of a follow edge right after it was toggled."""

    following: bool
    followers_count: int
