"""Publishing posts and materializing them into followers' timelines.

A new post is written together with the author's own timeline entry in one
transaction. Copying it into every follower's timeline happens afterwards on
the background dispatcher, so publishing never waits on the size of the
author's audience. If fan-out fails the post stays; followers that missed it
still find it on the author's profile.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flock.db import queries
from flock.db.errors import is_foreign_key_violation
from flock.models import Post, PostSubscription, TimelineItem
from flock.schemas import TimelineItemOut
from flock.services.dispatch import get_dispatcher
from flock.services.errors import (
    InvalidContentError,
    InvalidSpoilerError,
    UserNotFoundError,
    require_user,
)
from flock.services.live import get_live_hub
from flock.services.notifications import notify_post_mentions
from flock.services.pagination import normalize_page_size
from flock.services.posts import post_views

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 480
MAX_SPOILER_LENGTH = 64


def validate_content(content: str) -> str:
    """Return trimmed ``content`` or raise if it is empty or too long."""
    content = content.strip()
    if not content or len(content) > MAX_CONTENT_LENGTH:
        raise InvalidContentError()
    return content


def validate_spoiler(spoiler_of: str | None) -> str | None:
    if spoiler_of is None:
        return None
    spoiler_of = spoiler_of.strip()
    if not spoiler_of or len(spoiler_of) > MAX_SPOILER_LENGTH:
        raise InvalidSpoilerError()
    return spoiler_of


def _items_out(db: Session, viewer_id: int | None, items: list[TimelineItem]) -> list[TimelineItemOut]:
    views = post_views(db, viewer_id, [item.post for item in items])
    return [TimelineItemOut(id=item.id, post=view) for item, view in zip(items, views)]


def create_post(
    db: Session,
    user_id: int | None,
    content: str,
    spoiler_of: str | None = None,
    nsfw: bool = False,
) -> TimelineItemOut:
    """Publish a post and return the author's own timeline entry for it.

    Raises:
        UnauthenticatedError: No user id.
        InvalidContentError: Content is blank or longer than 480 characters.
        InvalidSpoilerError: Spoiler label is blank or longer than 64 characters.
    """
    user_id = require_user(user_id)
    content = validate_content(content)
    spoiler_of = validate_spoiler(spoiler_of)

    try:
        post = Post(user_id=user_id, content=content, spoiler_of=spoiler_of, nsfw=nsfw)
        db.add(post)
        db.flush()
        item = TimelineItem(user_id=user_id, post_id=post.id)
        db.add(item)
        # Authors hear about comments on their own posts.
        db.add(PostSubscription(user_id=user_id, post_id=post.id))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_foreign_key_violation(exc):
            raise UserNotFoundError() from exc
        raise

    db.refresh(item)
    result = _items_out(db, user_id, [item])[0]
    logger.info("User %s published post %s", user_id, post.id)

    # Mentions do not wait on fan-out.
    dispatcher = get_dispatcher()
    dispatcher.submit(fanout_post, post.id)
    dispatcher.submit(notify_post_mentions, post.id)
    return result


def fanout_post(db: Session, post_id: int) -> int:
    """Copy a post into the timeline of every follower of its author.

    Runs on the background dispatcher with its own session. Returns the number
    of timeline entries written.
    """
    post = db.get(Post, post_id)
    if post is None:
        logger.warning("Fan-out skipped: post %s no longer exists", post_id)
        return 0
    author = post.user
    params = {"post_id": post.id, "author_id": author.id}

    db.execute(queries.FANOUT_POST, params)
    items = list(db.scalars(queries.FANOUT_ITEMS, params).unique().all())
    db.commit()
    logger.info(
        "Fanned out post %s by %s to %d followers", post.id, author.username, len(items)
    )

    hub = get_live_hub()
    views = post_views(db, None, [post])
    for item in items:
        hub.timeline.publish(item.user_id, TimelineItemOut(id=item.id, post=views[0]))
    return len(items)


def timeline(
    db: Session,
    user_id: int | None,
    last: int | None = None,
    before: int | None = None,
) -> list[TimelineItemOut]:
    """Return the requester's timeline, newest first, older than the ``before`` item id."""
    user_id = require_user(user_id)
    query = select(TimelineItem).where(TimelineItem.user_id == user_id)
    if before is not None:
        query = query.where(TimelineItem.id < before)
    query = query.order_by(TimelineItem.id.desc()).limit(normalize_page_size(last))
    return _items_out(db, user_id, list(db.scalars(query).unique().all()))
