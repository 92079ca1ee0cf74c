"""Classification of integrity errors raised by the relational store.

Services rely on two signals from the database: a uniqueness violation means a
concurrent writer got there first, and a foreign key violation means the
referenced row does not exist. Both PostgreSQL (SQLSTATE codes) and SQLite
(message text) are recognized.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # psycopg 3 exposes ``sqlstate``; psycopg2 exposes ``pgcode``.
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_unique_violation(exc: DBAPIError) -> bool:
    """Return True when ``exc`` was caused by a unique or primary key conflict."""
    if _sqlstate(exc) == UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(exc.orig)


def is_foreign_key_violation(exc: DBAPIError) -> bool:
    """Return True when ``exc`` was caused by a missing referenced row."""
    if _sqlstate(exc) == FOREIGN_KEY_VIOLATION:
        return True
    return "FOREIGN KEY constraint failed" in str(exc.orig)


def violates_column(exc: DBAPIError, column: str) -> bool:
    """Return True when the constraint named in ``exc`` mentions ``column``."""
    return column in str(exc.orig)
