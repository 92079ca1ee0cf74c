"""Authentication endpoints for the Flock API."""

from fastapi import APIRouter

from flock.api.v1.dependencies import OptionalUserDep, SessionDep
from flock.schemas import LoginOut, LoginRequest, UserOut
from flock.services import users as user_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginOut)
async def login(payload: LoginRequest, db: SessionDep) -> LoginOut:
    """Exchange a registered email address for a bearer token."""
    return user_service.login(db, payload.email)


@router.get("/user", response_model=UserOut)
async def auth_user(db: SessionDep, user_id: OptionalUserDep) -> UserOut:
    """Return the account the bearer token belongs to."""
    return user_service.auth_user(db, user_id)
