"""Notification Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    """Aggregated notification as delivered to its recipient."""

    id: int
    actors: list[str]
    type: Literal["follow", "comment", "mention"]
    read: bool
    post_id: int | None = None
    issued_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadOut(BaseModel):
    """Whether the requester has anything unread."""

    has_unread: bool
