"""Detached background work that runs after a request's transaction commits.

Fan-out and notification jobs must never hold up the request that triggered
them, and must never reuse its session: by the time they run, the request's
transaction is closed. Each job therefore receives a brand new session from
the dispatcher's session factory and owns it for its whole run.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from flock.core.settings import settings
from flock.db.session import SessionLocal

logger = logging.getLogger(__name__)

Job = Callable[..., Any]


class BackgroundDispatcher:
    """Thread pool that runs post-commit jobs with their own database session.

    Failures are logged with their traceback and swallowed at the pool
    boundary: the request that scheduled the job has already returned, so
    there is nobody left to report them to.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session] = SessionLocal,
        max_workers: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.background_workers,
            thread_name_prefix="flock-bg",
        )
        self._pending: set[Future[Any]] = set()
        self._lock = threading.Lock()

    def submit(self, job: Job, *args: Any) -> Future[Any]:
        """Schedule ``job(db, *args)`` on the pool and return immediately."""
        future = self._executor.submit(self._run, job, args)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _run(self, job: Job, args: tuple[Any, ...]) -> Any:
        name = getattr(job, "__name__", repr(job))
        try:
            with self._session_factory() as db:
                return job(db, *args)
        except Exception:
            logger.exception("Background job %s%r failed", name, args)
            return None

    def _forget(self, future: Future[Any]) -> None:
        with self._lock:
            self._pending.discard(future)

    def join(self, timeout: float | None = None) -> None:
        """Block until every job submitted so far, and any job they submit, has finished."""
        while True:
            with self._lock:
                pending = {future for future in self._pending if not future.done()}
            if not pending:
                return
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning("%d background jobs still running after %ss", len(not_done), timeout)
                return

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        """Stop accepting jobs and optionally wait for the running ones."""
        self._executor.shutdown(wait=wait_for_jobs)


_dispatcher: BackgroundDispatcher | None = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> BackgroundDispatcher:
    """Return the process-wide dispatcher, creating it on first use."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = BackgroundDispatcher()
        return _dispatcher


def set_dispatcher(dispatcher: BackgroundDispatcher | None) -> None:
    """Replace the process-wide dispatcher (used at shutdown and in tests)."""
    global _dispatcher
    with _dispatcher_lock:
        _dispatcher = dispatcher
