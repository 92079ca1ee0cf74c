"""Versioned API router wiring for v1.

This module composes the version 1 API surface by including the sub-routers
that define their own endpoints. It contains no endpoint definitions.
"""
from __future__ import annotations

from typing import Final

from fastapi import APIRouter

from .endpoints import (
    auth_router,
    comments_router,
    notifications_router,
    posts_router,
    timeline_router,
    users_router,
)

api_v1: Final[APIRouter] = APIRouter()
api_v1.include_router(auth_router)
api_v1.include_router(users_router)
api_v1.include_router(posts_router)
api_v1.include_router(comments_router)
api_v1.include_router(timeline_router)
api_v1.include_router(notifications_router)

__all__ = ["api_v1"]
