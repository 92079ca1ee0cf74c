"""Error classes raised by the service layer.

The HTTP layer maps each family to a status code; anything that is not a
``FlockError`` is treated as an infrastructure failure.
"""

from __future__ import annotations


class FlockError(Exception):
    """Base class for expected, client-attributable failures."""

    default_message = "request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


# Validation: rejected before any store access.
class InvalidInputError(FlockError):
    default_message = "invalid input"


class InvalidContentError(InvalidInputError):
    default_message = "invalid content"


class InvalidSpoilerError(InvalidInputError):
    default_message = "invalid spoiler"


class InvalidUsernameError(InvalidInputError):
    default_message = "invalid username"


class InvalidEmailError(InvalidInputError):
    default_message = "invalid email"


# Not found: zero-row read or foreign key violation.
class NotFoundError(FlockError):
    default_message = "not found"


class UserNotFoundError(NotFoundError):
    default_message = "user not found"


class PostNotFoundError(NotFoundError):
    default_message = "post not found"


class CommentNotFoundError(NotFoundError):
    default_message = "comment not found"


class NotificationNotFoundError(NotFoundError):
    default_message = "notification not found"


# Conflict: uniqueness violation that the caller should see as "already exists".
class ConflictError(FlockError):
    default_message = "already exists"


class EmailTakenError(ConflictError):
    default_message = "email taken"


class UsernameTakenError(ConflictError):
    default_message = "username taken"


class ToggleConflictError(ConflictError):
    default_message = "concurrent update, try again"


class UnauthenticatedError(FlockError):
    default_message = "unauthenticated"


class ForbiddenFollowError(FlockError):
    default_message = "cannot follow yourself"


def require_user(user_id: int | None) -> int:
    """Return ``user_id`` or raise when the caller is anonymous."""
    if user_id is None:
        raise UnauthenticatedError()
    return user_id
