"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with SLABRELAY_ prefix.
The database URL also answers to plain DATABASE_URL, which is what the
rest of the inventory stack exports.

Learn: database_url has no default. A missing connection string
fails at import time with a ValidationError, so the process never starts
half-configured and no request ever sees that error.
"""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via SLABRELAY_* env vars."""

    # Database (SQLAlchemy form, postgresql+asyncpg://...)
    database_url: str = Field(
        validation_alias=AliasChoices("SLABRELAY_DATABASE_URL", "DATABASE_URL"),
    )

    # Subscriber connections for the realtime relay.
    # Much smaller than the query pool (5 + 15 overflow).
    subscriber_max_sessions: int = 5
    subscriber_acquire_timeout: float = 10.0  # seconds

    # Server
    environment: str = "development"
    debug: bool = False
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
    ]

    model_config = {"env_prefix": "SLABRELAY_"}

    @field_validator("database_url")
    @classmethod
    def normalize_database_url(cls, value: str) -> str:
        """Accept postgres://, postgresql:// or postgresql+asyncpg:// URLs."""
        for prefix in ("postgres://", "postgresql://"):
            if value.startswith(prefix):
                return "postgresql+asyncpg://" + value[len(prefix):]
        if not value.startswith("postgresql+asyncpg://"):
            raise ValueError(
                "database_url must be a PostgreSQL URL "
                "(postgresql:// or postgresql+asyncpg://)"
            )
        return value

    @property
    def asyncpg_dsn(self) -> str:
        """Plain libpq-style DSN for direct asyncpg connections."""
        return self.database_url.replace("postgresql+asyncpg://", "postgresql://", 1)


# Singleton — import this everywhere
settings = Settings()
