"""Idempotent toggling of relationship edges together with their counters.

Likes, follows and post subscriptions are all the same operation: within one
transaction, flip the existence of an edge and move the denormalized counters
that mirror it. The edge and the counters are never observed out of step.

Two toggles by the same actor on the same target may race. Both see the edge
missing and both insert; the loser hits the edge's uniqueness constraint. The
loser's transaction is rolled back as a no-op and the toggle is re-run, which
then observes the winner's edge and removes it. Symmetrically, a delete that
finds the edge already gone is re-run instead of decrementing. Two toggles
therefore always net out, and the counter keeps matching the number of edges.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import and_, bindparam, delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from flock.core.settings import settings
from flock.db.errors import is_foreign_key_violation, is_unique_violation
from flock.db.session import Base
from flock.models import Comment, CommentLike, Follow, Post, PostLike, PostSubscription, User
from flock.services.errors import (
    CommentNotFoundError,
    ForbiddenFollowError,
    NotFoundError,
    PostNotFoundError,
    ToggleConflictError,
    UserNotFoundError,
    require_user,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Relationship:
    """Declarative description of a togglable edge and the counters it drives.

    Attributes:
        name: Label used in logs.
        edge: ORM model of the edge table.
        actor_column: Edge column holding the acting user id.
        target_column: Edge column holding the target id.
        target: ORM model the edge points at; must have an ``id`` column.
        target_counter: Column on ``target`` counting incoming edges, if any.
        actor_counter: Column on ``User`` counting outgoing edges, if any.
        not_found: Error raised when the target does not exist.
        forbid_self: Reject edges whose actor and target are the same id.
    """

    name: str
    edge: type[Base]
    actor_column: str
    target_column: str
    target: type[Base]
    not_found: type[NotFoundError]
    target_counter: str | None = None
    actor_counter: str | None = None
    forbid_self: bool = False
    _edge_filter: Any = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        edge_filter = and_(
            getattr(self.edge, self.actor_column) == bindparam("actor_id"),
            getattr(self.edge, self.target_column) == bindparam("target_id"),
        )
        object.__setattr__(self, "_edge_filter", edge_filter)

    def edge_filter(self) -> ColumnElement[bool]:
        return self._edge_filter


POST_LIKE = Relationship(
    name="post_like",
    edge=PostLike,
    actor_column="user_id",
    target_column="post_id",
    target=Post,
    target_counter="likes_count",
    not_found=PostNotFoundError,
)

COMMENT_LIKE = Relationship(
    name="comment_like",
    edge=CommentLike,
    actor_column="user_id",
    target_column="comment_id",
    target=Comment,
    target_counter="likes_count",
    not_found=CommentNotFoundError,
)

FOLLOW = Relationship(
    name="follow",
    edge=Follow,
    actor_column="follower_id",
    target_column="followee_id",
    target=User,
    target_counter="followers_count",
    actor_counter="followees_count",
    not_found=UserNotFoundError,
    forbid_self=True,
)

POST_SUBSCRIPTION = Relationship(
    name="post_subscription",
    edge=PostSubscription,
    actor_column="user_id",
    target_column="post_id",
    target=Post,
    not_found=PostNotFoundError,
)


class _LostRace(Exception):
    """A concurrent toggle removed the edge between the check and the delete."""


@dataclass(frozen=True)
class ToggleResult:
    """Outcome of one toggle: the edge's new state and the target's counter."""

    active: bool
    count: int | None = None


def _edge_exists(db: Session, relationship: Relationship, actor_id: int, target_id: int) -> bool:
    return bool(
        db.scalar(
            select(exists().where(relationship.edge_filter())),
            {"actor_id": actor_id, "target_id": target_id},
        )
    )


def _move_counter(db: Session, model: type[Base], row_id: int, column: str, delta: int) -> int:
    counter = getattr(model, column)
    result = db.execute(
        update(model)
        .where(model.id == row_id)
        .values({column: counter + delta})
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _toggle_once(
    db: Session, relationship: Relationship, actor_id: int, target_id: int
) -> ToggleResult:
    params = {"actor_id": actor_id, "target_id": target_id}
    existed = _edge_exists(db, relationship, actor_id, target_id)
    if existed:
        deleted = db.execute(
            delete(relationship.edge)
            .where(relationship.edge_filter())
            .execution_options(synchronize_session=False),
            params,
        )
        if not deleted.rowcount:
            raise _LostRace()
        delta = -1
    else:
        db.add(
            relationship.edge(
                **{relationship.actor_column: actor_id, relationship.target_column: target_id}
            )
        )
        db.flush()
        delta = 1

    if relationship.actor_counter:
        _move_counter(db, User, actor_id, relationship.actor_counter, delta)

    count: int | None = None
    if relationship.target_counter:
        if not _move_counter(db, relationship.target, target_id, relationship.target_counter, delta):
            raise relationship.not_found()
        count = db.scalar(
            select(getattr(relationship.target, relationship.target_counter)).where(
                relationship.target.id == target_id
            )
        )

    db.commit()
    return ToggleResult(active=not existed, count=count)


def toggle_relationship(
    db: Session,
    actor_id: int | None,
    target_id: int,
    relationship: Relationship,
    *,
    max_attempts: int | None = None,
) -> ToggleResult:
    """Flip the edge ``actor_id -> target_id`` and return the state just reached.

    Raises:
        UnauthenticatedError: ``actor_id`` is None.
        ForbiddenFollowError: Self-edge on a relationship that forbids it.
        NotFoundError: The target does not exist (relationship specific subclass).
        ToggleConflictError: Every attempt lost a uniqueness race.
    """
    actor_id = require_user(actor_id)
    if relationship.forbid_self and actor_id == target_id:
        raise ForbiddenFollowError()

    attempts = max(1, max_attempts or settings.toggle_max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return _toggle_once(db, relationship, actor_id, target_id)
        except IntegrityError as exc:
            db.rollback()
            if is_foreign_key_violation(exc):
                raise relationship.not_found() from exc
            if not is_unique_violation(exc):
                raise
            logger.info(
                "Toggle %s %s->%s lost a race (attempt %d/%d)",
                relationship.name,
                actor_id,
                target_id,
                attempt,
                attempts,
            )
        except _LostRace:
            db.rollback()
            logger.info(
                "Toggle %s %s->%s lost a delete race (attempt %d/%d)",
                relationship.name,
                actor_id,
                target_id,
                attempt,
                attempts,
            )
        except NotFoundError:
            db.rollback()
            raise
    raise ToggleConflictError()
