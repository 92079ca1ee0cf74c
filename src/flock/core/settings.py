"""Application settings and configuration.

This module defines all configuration options for the Flock application.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Flock", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./flock.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Public origin used to build avatar URLs
    origin: str = Field(default="http://localhost:8000", alias="ORIGIN")

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 14,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Background work dispatched after commit (fan-out, notifications)
    background_workers: int = Field(default=4, alias="BACKGROUND_WORKERS")

    # Live delivery to streaming clients
    live_queue_size: int = Field(default=64, alias="LIVE_QUEUE_SIZE")
    live_registry_stripes: int = Field(default=16, alias="LIVE_REGISTRY_STRIPES")
    sse_keepalive_seconds: float = Field(default=15.0, alias="SSE_KEEPALIVE_SECONDS")

    # Retries for transactions that lose a uniqueness race
    toggle_max_attempts: int = Field(default=3, alias="TOGGLE_MAX_ATTEMPTS")
    notification_max_attempts: int = Field(default=3, alias="NOTIFICATION_MAX_ATTEMPTS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def avatars_url_prefix(self) -> str:
        """Return the public URL prefix under which avatars are served."""
        return self.origin.rstrip("/") + "/public/avatars/users/"


settings = Settings()  # type: ignore[call-arg]
