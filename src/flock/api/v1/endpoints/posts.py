"""Post and comment endpoints for the Flock API."""

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import StreamingResponse

from flock.api.v1.dependencies import OptionalUserDep, SessionDep
from flock.api.v1.streaming import event_stream_response, wants_event_stream
from flock.schemas import (
    CommentCreate,
    CommentOut,
    PostCreate,
    PostOut,
    TimelineItemOut,
    ToggleLikeOut,
    ToggleSubscriptionOut,
)
from flock.services import comments as comment_service
from flock.services import posts as post_service
from flock.services import timeline as timeline_service
from flock.services.live import get_live_hub

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", response_model=TimelineItemOut, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate, db: SessionDep, user_id: OptionalUserDep
) -> TimelineItemOut:
    """Publish a post.

    Returns the author's own timeline entry; followers receive theirs shortly
    after, in the background.
    """
    return timeline_service.create_post(
        db, user_id, payload.content, payload.spoiler_of, payload.nsfw
    )


@router.get("/{post_id}", response_model=PostOut)
async def get_post(post_id: int, db: SessionDep, user_id: OptionalUserDep) -> PostOut:
    """Get a specific post by ID."""
    return post_service.post(db, user_id, post_id)


@router.post("/{post_id}/toggle_like", response_model=ToggleLikeOut)
async def toggle_post_like(
    post_id: int, db: SessionDep, user_id: OptionalUserDep
) -> ToggleLikeOut:
    """Like the post, or unlike it if already liked."""
    return post_service.toggle_post_like(db, user_id, post_id)


@router.post("/{post_id}/toggle_subscription", response_model=ToggleSubscriptionOut)
async def toggle_post_subscription(
    post_id: int, db: SessionDep, user_id: OptionalUserDep
) -> ToggleSubscriptionOut:
    """Subscribe to the post's comments, or unsubscribe."""
    return post_service.toggle_post_subscription(db, user_id, post_id)


@router.post(
    "/{post_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: int, payload: CommentCreate, db: SessionDep, user_id: OptionalUserDep
) -> CommentOut:
    """Comment on a post."""
    return comment_service.create_comment(db, user_id, post_id, payload.content)


@router.get("/{post_id}/comments", response_model=list[CommentOut])
async def list_comments(
    post_id: int,
    request: Request,
    db: SessionDep,
    user_id: OptionalUserDep,
    last: int = Query(0, description="Page size, clamped to [1, 90]; 0 means 10"),
    before: int | None = Query(None, description="Return comments older than this comment id"),
) -> list[CommentOut] | StreamingResponse:
    """List a post's comments, newest first, or stream new ones as they arrive."""
    if wants_event_stream(request):
        post_service.post(db, user_id, post_id)
        return event_stream_response(request, get_live_hub().comments, post_id)
    return comment_service.comments(db, user_id, post_id, last, before)
