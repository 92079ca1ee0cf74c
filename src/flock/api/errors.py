"""Mapping of service errors onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from flock.services.errors import (
    ConflictError,
    FlockError,
    ForbiddenFollowError,
    InvalidInputError,
    NotFoundError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: tuple[tuple[type[FlockError], int], ...] = (
    (InvalidInputError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenFollowError, status.HTTP_403_FORBIDDEN),
)


def status_for(exc: FlockError) -> int:
    for error_class, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FlockError)
    async def flock_error_handler(request: Request, exc: FlockError) -> JSONResponse:
        status_code = status_for(exc)
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(
            "Database failure on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
