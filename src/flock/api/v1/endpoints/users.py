"""User, profile and follow endpoints for the Flock API."""

from fastapi import APIRouter, Query, status

from flock.api.v1.dependencies import OptionalUserDep, SessionDep
from flock.schemas import PostOut, ToggleFollowOut, UserCreate, UserOut, UserProfileOut
from flock.services import posts as post_service
from flock.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, db: SessionDep) -> UserOut:
    """Sign up a new account."""
    return user_service.create_user(db, payload.email, payload.username)


@router.get("", response_model=list[UserProfileOut])
async def list_users(
    db: SessionDep,
    user_id: OptionalUserDep,
    search: str | None = Query(None, description="Case-insensitive username filter"),
    first: int = Query(0, description="Page size, clamped to [1, 90]; 0 means 10"),
    after: str | None = Query(None, description="Return users after this username"),
) -> list[UserProfileOut]:
    """List users alphabetically with forward pagination."""
    return user_service.users(db, user_id, search, first, after)


@router.get("/{username}", response_model=UserProfileOut)
async def get_user(username: str, db: SessionDep, user_id: OptionalUserDep) -> UserProfileOut:
    """Get a user's profile with relationship flags relative to the caller."""
    return user_service.user_profile(db, user_id, username)


@router.post("/{username}/toggle_follow", response_model=ToggleFollowOut)
async def toggle_follow(
    username: str, db: SessionDep, user_id: OptionalUserDep
) -> ToggleFollowOut:
    """Follow the user, or unfollow if already following."""
    return user_service.toggle_follow(db, user_id, username)


@router.get("/{username}/followers", response_model=list[UserProfileOut])
async def list_followers(
    username: str,
    db: SessionDep,
    user_id: OptionalUserDep,
    search: str | None = Query(None),
    first: int = Query(0),
    after: str | None = Query(None),
) -> list[UserProfileOut]:
    """List the accounts following ``username``."""
    return user_service.followers(db, user_id, username, search, first, after)


@router.get("/{username}/followees", response_model=list[UserProfileOut])
async def list_followees(
    username: str,
    db: SessionDep,
    user_id: OptionalUserDep,
    search: str | None = Query(None),
    first: int = Query(0),
    after: str | None = Query(None),
) -> list[UserProfileOut]:
    """List the accounts ``username`` follows."""
    return user_service.followees(db, user_id, username, search, first, after)


@router.get("/{username}/posts", response_model=list[PostOut])
async def list_user_posts(
    username: str,
    db: SessionDep,
    user_id: OptionalUserDep,
    last: int = Query(0, description="Page size, clamped to [1, 90]; 0 means 10"),
    before: int | None = Query(None, description="Return posts older than this post id"),
) -> list[PostOut]:
    """List a user's posts, newest first."""
    return post_service.posts(db, user_id, username, last, before)
