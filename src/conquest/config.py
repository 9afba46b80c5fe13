"""Runtime configuration for the conquest engine."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Deployment settings read from the environment or a local ``.env`` file.

    Domain policy (protection duration, tier thresholds, threat weights) is not
    configured here; see :mod:`conquest.domain.rules_config`.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="CONQUEST_"
    )

    database_url: str = Field(
        default="sqlite:///conquest.db", description="SQLAlchemy database URL"
    )
    database_echo: bool = Field(default=False, description="Echo emitted SQL to the log")
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    database_pool_recycle: int = Field(
        default=1800, description="Seconds before a pooled connection is recycled"
    )
    storage_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Upper bound for lock waits, statements and pool checkout",
    )
    log_level: str = Field(default="INFO", description="Root log level for the CLI")


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
