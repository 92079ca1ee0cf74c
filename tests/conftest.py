# tests/conftest.py
from __future__ import annotations

import logging
import os
from collections.abc import Callable, Generator, Iterator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("SECRET_KEY", "flock-test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from flock.core.security import create_access_token
from flock.db.session import Base, enable_sqlite_foreign_keys
from flock.db.session import get_db as app_get_session
from flock.main import app as fastapi_app
from flock.models import Follow, User
from flock.services.dispatch import BackgroundDispatcher, set_dispatcher
from flock.services.live import LiveHub, set_live_hub


@pytest.fixture(scope="session")
def engine(tmp_path_factory: pytest.TempPathFactory) -> Generator[Engine, None, None]:
    # A file database gives each session its own connection, like a real server,
    # so background jobs never share a transaction with the request that queued them.
    db_path: Path = tmp_path_factory.mktemp("db") / "flock.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="session")
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(autouse=True)
def live_hub() -> Iterator[LiveHub]:
    """Give every test its own live registries."""
    hub = LiveHub()
    set_live_hub(hub)
    try:
        yield hub
    finally:
        hub.close_all()
        set_live_hub(LiveHub())


def _background_failures(caplog: pytest.LogCaptureFixture) -> list[logging.LogRecord]:
    records = [*caplog.get_records("setup"), *caplog.get_records("call"), *caplog.records]
    return [
        record
        for record in records
        if record.name == "flock.services.dispatch" and record.levelno >= logging.ERROR
    ]


@pytest.fixture(autouse=True)
def dispatcher(
    request: pytest.FixtureRequest,
    session_factory: sessionmaker[Session],
    caplog: pytest.LogCaptureFixture,
) -> Iterator[BackgroundDispatcher]:
    """Single-worker dispatcher so background work runs in submission order.

    A test fails when one of its background jobs raised, unless it is marked
    ``background_failures``.
    """
    dispatcher = BackgroundDispatcher(session_factory, max_workers=1)
    set_dispatcher(dispatcher)
    try:
        yield dispatcher
    finally:
        dispatcher.join(timeout=10)
        dispatcher.shutdown()
        set_dispatcher(None)

    if request.node.get_closest_marker("background_failures") is None:
        failures = _background_failures(caplog)
        if failures:
            pytest.fail(
                "background job failed: " + "; ".join(r.getMessage() for r in failures),
                pytrace=False,
            )


@pytest.fixture()
def db_session(
    engine: Engine,
    session_factory: sessionmaker[Session],
    dispatcher: BackgroundDispatcher,
) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
        # Background jobs must finish before their rows are wiped.
        dispatcher.join(timeout=10)
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(
    app: FastAPI, session_factory: sessionmaker[Session], db_session: Session
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with predictable emails."""

    def _make_user(username: str, email: str | None = None) -> User:
        user = User(email=email or f"{username.lower()}@example.com", username=username)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def follow(db_session: Session) -> Callable[[User, User], None]:
    """Return a helper writing a follow edge together with its counters."""

    def _follow(follower: User, followee: User) -> None:
        db_session.add(Follow(follower_id=follower.id, followee_id=followee.id))
        follower.followees_count += 1
        followee.followers_count += 1
        db_session.commit()

    return _follow


@pytest.fixture()
def alice(make_user: Callable[..., User]) -> User:
    return make_user("alice")


@pytest.fixture()
def bob(make_user: Callable[..., User]) -> User:
    return make_user("bob")


@pytest.fixture()
def carol(make_user: Callable[..., User]) -> User:
    return make_user("carol")


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def alice_auth(alice: User) -> dict[str, str]:
    """Return authorization headers for alice."""
    return auth_headers(alice)


@pytest.fixture()
def bob_auth(bob: User) -> dict[str, str]:
    """Return authorization headers for bob."""
    return auth_headers(bob)
