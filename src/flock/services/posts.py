"""Post reads and post likes."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from flock.models import Post, PostLike, PostSubscription, User
from flock.schemas import PostOut, ToggleLikeOut, ToggleSubscriptionOut, UserOut
from flock.services.errors import PostNotFoundError, UserNotFoundError
from flock.services.pagination import normalize_page_size
from flock.services.toggles import POST_LIKE, POST_SUBSCRIPTION, toggle_relationship


def _edge_post_ids(db: Session, model: type, viewer_id: int, post_ids: list[int]) -> set[int]:
    if not post_ids:
        return set()
    rows = db.scalars(
        select(model.post_id).where(model.user_id == viewer_id, model.post_id.in_(post_ids))
    )
    return set(rows)


def post_views(db: Session, viewer_id: int | None, posts: Sequence[Post]) -> list[PostOut]:
    """Render ``posts`` with the viewer-relative ``mine``/``liked``/``subscribed`` flags."""
    liked: set[int] = set()
    subscribed: set[int] = set()
    if viewer_id is not None:
        ids = [post.id for post in posts]
        liked = _edge_post_ids(db, PostLike, viewer_id, ids)
        subscribed = _edge_post_ids(db, PostSubscription, viewer_id, ids)
    return [
        PostOut(
            id=post.id,
            content=post.content,
            spoiler_of=post.spoiler_of,
            nsfw=post.nsfw,
            likes_count=post.likes_count,
            comments_count=post.comments_count,
            created_at=post.created_at,
            user=UserOut.model_validate(post.user),
            mine=viewer_id is not None and post.user_id == viewer_id,
            liked=post.id in liked,
            subscribed=post.id in subscribed,
        )
        for post in posts
    ]


def post(db: Session, viewer_id: int | None, post_id: int) -> PostOut:
    """Return one post as seen by ``viewer_id``."""
    row = db.get(Post, post_id)
    if row is None:
        raise PostNotFoundError()
    return post_views(db, viewer_id, [row])[0]


def posts(
    db: Session,
    viewer_id: int | None,
    username: str,
    last: int | None = None,
    before: int | None = None,
) -> list[PostOut]:
    """List a user's posts, newest first, older than the ``before`` post id."""
    author_id = db.scalar(select(User.id).where(User.username == username))
    if author_id is None:
        raise UserNotFoundError()

    query = select(Post).where(Post.user_id == author_id)
    if before is not None:
        query = query.where(Post.id < before)
    query = query.order_by(Post.id.desc()).limit(normalize_page_size(last))
    return post_views(db, viewer_id, db.scalars(query).unique().all())


def toggle_post_like(db: Session, user_id: int | None, post_id: int) -> ToggleLikeOut:
    """Like or unlike a post, returning the new state and like count."""
    result = toggle_relationship(db, user_id, post_id, POST_LIKE)
    return ToggleLikeOut(liked=result.active, likes_count=result.count or 0)


def toggle_post_subscription(db: Session, user_id: int | None, post_id: int) -> ToggleSubscriptionOut:
    """Opt in or out of comment notifications for a post."""
    result = toggle_relationship(db, user_id, post_id, POST_SUBSCRIPTION)
    return ToggleSubscriptionOut(subscribed=result.active)
