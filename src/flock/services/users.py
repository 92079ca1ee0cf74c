"""Accounts, login, profiles and the follow graph."""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from flock.core.security import create_access_token
from flock.db import queries
from flock.db.errors import is_unique_violation, violates_column
from flock.models import Follow, User
from flock.schemas import LoginOut, ToggleFollowOut, UserOut, UserProfileOut
from flock.services.dispatch import get_dispatcher
from flock.services.errors import (
    EmailTakenError,
    InvalidEmailError,
    InvalidUsernameError,
    UnauthenticatedError,
    UserNotFoundError,
    UsernameTakenError,
)
from flock.services.mentions import RX_USERNAME
from flock.services.notifications import notify_follow
from flock.services.pagination import normalize_page_size
from flock.services.toggles import FOLLOW, toggle_relationship

__all__ = [
    "auth_user",
    "create_user",
    "followees",
    "followers",
    "login",
    "toggle_follow",
    "user_profile",
    "users",
]

logger = logging.getLogger(__name__)

RX_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _validate_username(username: str) -> str:
    username = username.strip()
    if not RX_USERNAME.match(username):
        raise InvalidUsernameError()
    return username


def _resolve_user_id(db: Session, username: str) -> int:
    user_id = db.scalar(queries.USER_ID_BY_USERNAME, {"username": username})
    if user_id is None:
        raise UserNotFoundError()
    return user_id


def create_user(db: Session, email: str, username: str) -> UserOut:
    """Sign up a new account.

    Raises:
        InvalidEmailError: ``email`` is not an address.
        InvalidUsernameError: ``username`` does not match the handle pattern.
        EmailTakenError: Another account uses ``email``.
        UsernameTakenError: Another account uses ``username``.
    """
    email = email.strip().lower()
    if not RX_EMAIL.match(email):
        raise InvalidEmailError()
    username = _validate_username(username)

    db_user = User(email=email, username=username)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_unique_violation(exc):
            if violates_column(exc, "username"):
                raise UsernameTakenError() from exc
            if violates_column(exc, "email"):
                raise EmailTakenError() from exc
        raise
    db.refresh(db_user)
    logger.info("Created user %s (%s)", db_user.id, db_user.username)
    return UserOut.model_validate(db_user)


def login(db: Session, email: str) -> LoginOut:
    """Issue a bearer token for the account registered with ``email``."""
    email = email.strip().lower()
    if not RX_EMAIL.match(email):
        raise InvalidEmailError()
    db_user = db.scalar(select(User).where(User.email == email))
    if db_user is None:
        raise UserNotFoundError()
    token, expires_at = create_access_token(db_user.id)
    return LoginOut(token=token, expires_at=expires_at, user=UserOut.model_validate(db_user))


def auth_user(db: Session, user_id: int | None) -> UserOut:
    """Return the account behind the caller's token."""
    if user_id is None:
        raise UnauthenticatedError()
    db_user = db.get(User, user_id)
    if db_user is None:
        raise UnauthenticatedError()
    return UserOut.model_validate(db_user)


def _profiles(
    db: Session, viewer_id: int | None, users: Sequence[User]
) -> list[UserProfileOut]:
    following: set[int] = set()
    followeed: set[int] = set()
    ids = [user.id for user in users]
    if viewer_id is not None and ids:
        following = set(
            db.scalars(
                select(Follow.followee_id).where(
                    Follow.follower_id == viewer_id, Follow.followee_id.in_(ids)
                )
            )
        )
        followeed = set(
            db.scalars(
                select(Follow.follower_id).where(
                    Follow.followee_id == viewer_id, Follow.follower_id.in_(ids)
                )
            )
        )
    profiles = []
    for user in users:
        me = viewer_id is not None and user.id == viewer_id
        profiles.append(
            UserProfileOut(
                id=user.id if me else None,
                email=user.email if me else None,
                username=user.username,
                avatar_url=user.avatar_url,
                followers_count=user.followers_count,
                followees_count=user.followees_count,
                me=me,
                following=user.id in following,
                followeed=user.id in followeed,
            )
        )
    return profiles


def user_profile(db: Session, viewer_id: int | None, username: str) -> UserProfileOut:
    """Return ``username``'s profile as seen by ``viewer_id``."""
    db_user = db.scalar(select(User).where(User.username == username))
    if db_user is None:
        raise UserNotFoundError()
    return _profiles(db, viewer_id, [db_user])[0]


def _user_page(
    db: Session,
    viewer_id: int | None,
    query,
    search: str | None,
    first: int | None,
    after: str | None,
) -> list[UserProfileOut]:
    if search:
        query = query.where(User.username.icontains(search.strip(), autoescape=True))
    if after is not None:
        query = query.where(User.username > after)
    query = query.order_by(User.username.asc()).limit(normalize_page_size(first))
    return _profiles(db, viewer_id, db.scalars(query).all())


def users(
    db: Session,
    viewer_id: int | None,
    search: str | None = None,
    first: int | None = None,
    after: str | None = None,
) -> list[UserProfileOut]:
    """List accounts alphabetically, after the ``after`` username."""
    return _user_page(db, viewer_id, select(User), search, first, after)


def followers(
    db: Session,
    viewer_id: int | None,
    username: str,
    search: str | None = None,
    first: int | None = None,
    after: str | None = None,
) -> list[UserProfileOut]:
    """List the accounts following ``username``, alphabetically."""
    user_id = _resolve_user_id(db, username)
    query = select(User).join(Follow, Follow.follower_id == User.id).where(
        Follow.followee_id == user_id
    )
    return _user_page(db, viewer_id, query, search, first, after)


def followees(
    db: Session,
    viewer_id: int | None,
    username: str,
    search: str | None = None,
    first: int | None = None,
    after: str | None = None,
) -> list[UserProfileOut]:
    """List the accounts ``username`` follows, alphabetically."""
    user_id = _resolve_user_id(db, username)
    query = select(User).join(Follow, Follow.followee_id == User.id).where(
        Follow.follower_id == user_id
    )
    return _user_page(db, viewer_id, query, search, first, after)


def toggle_follow(db: Session, user_id: int | None, username: str) -> ToggleFollowOut:
    """Follow or unfollow ``username``.

    A follow, but not an unfollow, notifies the followee once committed.
    """
    if user_id is None:
        raise UnauthenticatedError()
    username = _validate_username(username)
    followee_id = _resolve_user_id(db, username)
    result = toggle_relationship(db, user_id, followee_id, FOLLOW)
    if result.active:
        get_dispatcher().submit(notify_follow, user_id, followee_id)
    return ToggleFollowOut(following=result.active, followers_count=result.count or 0)
