"""Comments on posts and comment likes."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flock.db import queries
from flock.db.errors import is_foreign_key_violation
from flock.models import Comment, CommentLike, Post, PostSubscription
from flock.schemas import CommentOut, ToggleLikeOut, UserOut
from flock.services.dispatch import get_dispatcher
from flock.services.errors import PostNotFoundError, require_user
from flock.services.live import get_live_hub
from flock.services.notifications import notify_comment, notify_comment_mentions
from flock.services.pagination import normalize_page_size
from flock.services.timeline import validate_content
from flock.services.toggles import COMMENT_LIKE, toggle_relationship

logger = logging.getLogger(__name__)


def comment_views(
    db: Session, viewer_id: int | None, comments: Sequence[Comment]
) -> list[CommentOut]:
    """Render ``comments`` with the viewer-relative ``mine``/``liked`` flags."""
    liked: set[int] = set()
    if viewer_id is not None and comments:
        liked = set(
            db.scalars(
                select(CommentLike.comment_id).where(
                    CommentLike.user_id == viewer_id,
                    CommentLike.comment_id.in_([comment.id for comment in comments]),
                )
            )
        )
    return [
        CommentOut(
            id=comment.id,
            post_id=comment.post_id,
            content=comment.content,
            likes_count=comment.likes_count,
            created_at=comment.created_at,
            user=UserOut.model_validate(comment.user),
            mine=viewer_id is not None and comment.user_id == viewer_id,
            liked=comment.id in liked,
        )
        for comment in comments
    ]


def create_comment(
    db: Session, user_id: int | None, post_id: int, content: str
) -> CommentOut:
    """Comment on a post.

    The comment, the commenter's subscription to the post and the post's
    comment counter are written in one transaction. Live broadcast and
    notifications follow on the background dispatcher.

    Raises:
        UnauthenticatedError: No user id.
        InvalidContentError: Content is blank or longer than 480 characters.
        PostNotFoundError: The post does not exist.
    """
    user_id = require_user(user_id)
    content = validate_content(content)

    try:
        comment = Comment(post_id=post_id, user_id=user_id, content=content)
        db.add(comment)
        db.flush()
        params = {"user_id": user_id, "post_id": post_id}
        if not db.scalar(queries.SUBSCRIPTION_EXISTS, params):
            db.add(PostSubscription(**params))
        result = db.execute(queries.INCREMENT_COMMENTS_COUNT, {"post_id": post_id})
        if not result.rowcount:
            raise PostNotFoundError()
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_foreign_key_violation(exc):
            raise PostNotFoundError() from exc
        raise
    except PostNotFoundError:
        db.rollback()
        raise

    db.refresh(comment)
    view = comment_views(db, user_id, [comment])[0]
    logger.info("User %s commented on post %s", user_id, post_id)

    dispatcher = get_dispatcher()
    dispatcher.submit(broadcast_comment, comment.id)
    dispatcher.submit(notify_comment, comment.id)
    dispatcher.submit(notify_comment_mentions, comment.id)
    return view


def broadcast_comment(db: Session, comment_id: int) -> int:
    """Push a new comment to everyone streaming the post's comments."""
    comment = db.get(Comment, comment_id)
    if comment is None:
        return 0
    view = comment_views(db, None, [comment])[0]
    return get_live_hub().comments.publish(comment.post_id, view)


def comments(
    db: Session,
    viewer_id: int | None,
    post_id: int,
    last: int | None = None,
    before: int | None = None,
) -> list[CommentOut]:
    """List a post's comments, newest first, older than the ``before`` comment id."""
    if db.get(Post, post_id) is None:
        raise PostNotFoundError()
    query = select(Comment).where(Comment.post_id == post_id)
    if before is not None:
        query = query.where(Comment.id < before)
    query = query.order_by(Comment.id.desc()).limit(normalize_page_size(last))
    return comment_views(db, viewer_id, db.scalars(query).unique().all())


def toggle_comment_like(db: Session, user_id: int | None, comment_id: int) -> ToggleLikeOut:
    """Like or unlike a comment, returning the new state and like count."""
    result = toggle_relationship(db, user_id, comment_id, COMMENT_LIKE)
    return ToggleLikeOut(liked=result.active, likes_count=result.count or 0)
