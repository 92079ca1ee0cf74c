"""Comment endpoints for the Flock API."""

from fastapi import APIRouter

from flock.api.v1.dependencies import OptionalUserDep, SessionDep
from flock.schemas import ToggleLikeOut
from flock.services import comments as comment_service

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/{comment_id}/toggle_like", response_model=ToggleLikeOut)
async def toggle_comment_like(
    comment_id: int, db: SessionDep, user_id: OptionalUserDep
) -> ToggleLikeOut:
    """Like the comment, or unlike it if already liked."""
    return comment_service.toggle_comment_like(db, user_id, comment_id)
