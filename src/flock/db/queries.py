"""Prepared statements shared by the services.

Every statement here is built once, at import time, and only ever executed
with bound parameters. Statements whose shape depends on optional filters
(pagination cursors, search) are assembled per call in the services instead.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, bindparam, exists, func, insert, select, update

from flock.models import Follow, Notification, Post, PostSubscription, TimelineItem, User

# --- timeline fan-out -------------------------------------------------------

# One row per follower of the author, keyed by the follow edge. Built on the
# table so the session runs it as one INSERT ... SELECT.
FANOUT_POST = insert(TimelineItem.__table__).from_select(
    ["user_id", "post_id"],
    select(Follow.follower_id, bindparam("post_id", type_=BigInteger)).where(
        Follow.followee_id == bindparam("author_id")
    ),
)

FANOUT_ITEMS = (
    select(TimelineItem)
    .where(
        TimelineItem.post_id == bindparam("post_id"),
        TimelineItem.user_id != bindparam("author_id"),
    )
    .order_by(TimelineItem.id)
)

# --- comments ---------------------------------------------------------------

SUBSCRIPTION_EXISTS = select(
    exists().where(
        PostSubscription.user_id == bindparam("user_id"),
        PostSubscription.post_id == bindparam("post_id"),
    )
)

POST_SUBSCRIBERS_EXCEPT_ACTOR = (
    select(PostSubscription.user_id)
    .where(
        PostSubscription.post_id == bindparam("post_id"),
        PostSubscription.user_id != bindparam("actor_id"),
    )
    .order_by(PostSubscription.user_id)
)

INCREMENT_COMMENTS_COUNT = (
    update(Post)
    .where(Post.id == bindparam("post_id"))
    .values(comments_count=Post.comments_count + 1)
    .execution_options(synchronize_session=False)
)

# --- notifications ----------------------------------------------------------

UNREAD_NOTIFICATION = (
    select(Notification)
    .where(
        Notification.user_id == bindparam("user_id"),
        Notification.type == bindparam("type"),
        func.coalesce(Notification.post_id, 0) == bindparam("subject"),
        Notification.read.is_(False),
    )
    .with_for_update()
)

MARK_NOTIFICATION_READ = (
    update(Notification)
    .where(
        Notification.id == bindparam("notification_id"),
        Notification.user_id == bindparam("recipient_id"),
    )
    .values(read=True)
    .execution_options(synchronize_session=False)
)

MARK_ALL_NOTIFICATIONS_READ = (
    update(Notification)
    .where(
        Notification.user_id == bindparam("recipient_id"),
        Notification.read.is_(False),
    )
    .values(read=True)
    .execution_options(synchronize_session=False)
)

HAS_UNREAD_NOTIFICATIONS = select(
    exists().where(
        Notification.user_id == bindparam("user_id"),
        Notification.read.is_(False),
    )
)

# --- users ------------------------------------------------------------------

USER_ID_BY_USERNAME = select(User.id).where(User.username == bindparam("username"))

USERS_BY_USERNAMES = select(User.id, User.username).where(
    User.username.in_(bindparam("usernames", expanding=True))
)
