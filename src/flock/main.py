"""Main entry point for the Flock application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from flock.api.errors import install_error_handlers
from flock.api.v1 import api_v1
from flock.core.settings import settings
from flock.services.dispatch import get_dispatcher, set_dispatcher
from flock.services.live import get_live_hub

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Flock API",
    description="Social network API with materialized timelines and live notifications",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

install_error_handlers(app)

# Include API routers
app.include_router(api_v1, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    get_dispatcher()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    # Ends every open event stream; their generators unregister themselves.
    get_live_hub().close_all()
    get_dispatcher().shutdown(wait_for_jobs=True)
    set_dispatcher(None)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Social network API with materialized timelines and live notifications",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("flock.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
