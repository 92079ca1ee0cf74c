"""Aggregated notifications: merge, list, mark read.

Repeated activity on the same cause is folded into one unread row per
(recipient, type, subject post). The row keeps the actors most recent first
and without duplicates, and its ``issued_at`` moves to the latest event.
Reading the row closes it; the next event on the same cause opens a new one.

The merge functions run on the background dispatcher after the triggering
request has committed. Two of them racing to open the same unread row are
told apart by the partial unique index on notifications: the loser rolls back
and merges into the winner's row instead.
"""

from __future__ import annotations

import logging

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flock.core.settings import settings
from flock.db import queries
from flock.db.errors import is_foreign_key_violation, is_unique_violation
from flock.db.time import utcnow
from flock.models import Comment, Notification, Post, User
from flock.models.notification import (
    NOTIFICATION_TYPE_COMMENT,
    NOTIFICATION_TYPE_FOLLOW,
    NOTIFICATION_TYPE_MENTION,
)
from flock.schemas import NotificationOut, UnreadOut
from flock.services.errors import ConflictError, NotificationNotFoundError, require_user
from flock.services.live import get_live_hub
from flock.services.mentions import collect_mentions
from flock.services.pagination import normalize_page_size

logger = logging.getLogger(__name__)


def merge_actors(actors: list[str], actor: str) -> list[str]:
    """Put ``actor`` first, dropping any earlier occurrence."""
    return [actor] + [name for name in actors if name != actor]


def _merge_once(
    db: Session, recipient_id: int, type_: str, post_id: int | None, actor: str
) -> Notification:
    notification = db.scalars(
        queries.UNREAD_NOTIFICATION,
        {"user_id": recipient_id, "type": type_, "subject": post_id or 0},
    ).first()
    if notification is None:
        notification = Notification(
            user_id=recipient_id,
            actors=[actor],
            type=type_,
            post_id=post_id,
            read=False,
            issued_at=utcnow(),
        )
        db.add(notification)
    else:
        notification.actors = merge_actors(list(notification.actors), actor)
        notification.issued_at = utcnow()
    db.flush()
    db.commit()
    db.refresh(notification)
    return notification


def merge_notification(
    db: Session,
    recipient_id: int,
    type_: str,
    post_id: int | None,
    actor: str,
) -> Notification | None:
    """Record that ``actor`` caused a ``type_`` event for ``recipient_id`` and push it live.

    Returns the created or updated row, or None when the recipient or the
    subject post disappeared in the meantime.
    """
    attempts = max(1, settings.notification_max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            notification = _merge_once(db, recipient_id, type_, post_id, actor)
        except IntegrityError as exc:
            db.rollback()
            if is_foreign_key_violation(exc):
                logger.warning(
                    "Dropped %s notification for user %s: referenced row is gone",
                    type_,
                    recipient_id,
                )
                return None
            if not is_unique_violation(exc):
                raise
            logger.info(
                "Notification merge for user %s lost a race (attempt %d/%d)",
                recipient_id,
                attempt,
                attempts,
            )
            continue

        get_live_hub().notifications.publish(
            recipient_id, NotificationOut.model_validate(notification)
        )
        return notification
    raise ConflictError(f"could not merge {type_} notification for user {recipient_id}")


def notify_follow(db: Session, follower_id: int, followee_id: int) -> Notification | None:
    """Tell ``followee_id`` that ``follower_id`` started following them."""
    follower = db.get(User, follower_id)
    if follower is None:
        return None
    return merge_notification(db, followee_id, NOTIFICATION_TYPE_FOLLOW, None, follower.username)


def notify_comment(db: Session, comment_id: int) -> int:
    """Notify every subscriber of the commented post except the commenter."""
    comment = db.get(Comment, comment_id)
    if comment is None:
        return 0
    actor = comment.user.username
    post_id = comment.post_id
    recipients = list(
        db.scalars(
            queries.POST_SUBSCRIBERS_EXCEPT_ACTOR,
            {"post_id": post_id, "actor_id": comment.user_id},
        )
    )
    for recipient_id in recipients:
        merge_notification(db, recipient_id, NOTIFICATION_TYPE_COMMENT, post_id, actor)
    return len(recipients)


def _notify_mentions(
    db: Session, content: str, actor_id: int, actor: str, post_id: int
) -> int:
    usernames = collect_mentions(content)
    if not usernames:
        return 0
    recipients = [
        user_id
        for user_id, _ in db.execute(queries.USERS_BY_USERNAMES, {"usernames": usernames})
        if user_id != actor_id
    ]
    for recipient_id in recipients:
        merge_notification(db, recipient_id, NOTIFICATION_TYPE_MENTION, post_id, actor)
    return len(recipients)


def notify_comment_mentions(db: Session, comment_id: int) -> int:
    """Notify users mentioned with ``@username`` in a comment."""
    comment = db.get(Comment, comment_id)
    if comment is None:
        return 0
    return _notify_mentions(
        db, comment.content, comment.user_id, comment.user.username, comment.post_id
    )


def notify_post_mentions(db: Session, post_id: int) -> int:
    """Notify users mentioned with ``@username`` in a post."""
    post = db.get(Post, post_id)
    if post is None:
        return 0
    return _notify_mentions(db, post.content, post.user_id, post.user.username, post.id)


def notifications(
    db: Session,
    user_id: int | None,
    last: int | None = None,
    before: int | None = None,
) -> list[NotificationOut]:
    """List the requester's notifications, most recently issued first.

    ``before`` is the id of the last notification of the previous page. A
    cursor the requester does not own yields an empty page.
    """
    user_id = require_user(user_id)
    query = select(Notification).where(Notification.user_id == user_id)
    if before is not None:
        cursor = db.get(Notification, before)
        if cursor is None or cursor.user_id != user_id:
            return []
        query = query.where(
            or_(
                Notification.issued_at < cursor.issued_at,
                and_(Notification.issued_at == cursor.issued_at, Notification.id < cursor.id),
            )
        )
    query = query.order_by(Notification.issued_at.desc(), Notification.id.desc()).limit(
        normalize_page_size(last)
    )
    return [NotificationOut.model_validate(row) for row in db.scalars(query)]


def mark_notification_as_read(db: Session, user_id: int | None, notification_id: int) -> None:
    """Mark one of the requester's notifications as read."""
    user_id = require_user(user_id)
    result = db.execute(
        queries.MARK_NOTIFICATION_READ,
        {"notification_id": notification_id, "recipient_id": user_id},
    )
    if not result.rowcount:
        db.rollback()
        raise NotificationNotFoundError()
    db.commit()


def mark_notifications_as_read(db: Session, user_id: int | None) -> int:
    """Mark every unread notification of the requester as read; returns how many."""
    user_id = require_user(user_id)
    result = db.execute(queries.MARK_ALL_NOTIFICATIONS_READ, {"recipient_id": user_id})
    db.commit()
    return result.rowcount


def has_unread_notifications(db: Session, user_id: int | None) -> UnreadOut:
    user_id = require_user(user_id)
    return UnreadOut(
        has_unread=bool(db.scalar(queries.HAS_UNREAD_NOTIFICATIONS, {"user_id": user_id}))
    )
