# mypy: ignore-errors
"""Tests for mapping service errors onto HTTP status codes."""

import importlib
import warnings

import pytest

from flock.api import errors
from flock.services.errors import (
    EmailTakenError,
    FlockError,
    ForbiddenFollowError,
    InvalidContentError,
    NotificationNotFoundError,
    ToggleConflictError,
    UnauthenticatedError,
)


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (InvalidContentError(), 422),
        (NotificationNotFoundError(), 404),
        (EmailTakenError(), 409),
        (ToggleConflictError(), 409),
        (UnauthenticatedError(), 401),
        (ForbiddenFollowError(), 403),
        (FlockError(), 400),
    ],
)
def test_status_for(exc, expected) -> None:
    assert errors.status_for(exc) == expected


def test_error_mapping_uses_current_status_names() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        module = importlib.reload(errors)

    assert module.status_for(InvalidContentError()) == 422
