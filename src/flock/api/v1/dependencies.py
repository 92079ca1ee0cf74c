"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from flock.core.security import decode_access_token
from flock.db.session import get_db

# Anonymous requests are allowed; operations that need a user reject them.
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_optional_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> int | None:
    """Resolve the bearer token into a user id.

    Args:
        credentials: HTTP Bearer token credentials, if any were sent

    Returns:
        The authenticated user id, or None for missing or invalid tokens
    """
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials)


# Type alias for the optional authenticated user id
OptionalUserDep = Annotated[int | None, Depends(get_optional_user_id)]
