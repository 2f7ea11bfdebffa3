# src/petstory/config/config.py
"""Configuration system for petstory."""

from __future__ import annotations

import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env(name: str, default: Any) -> Any:
    """Return a factory reading ``name`` from the environment."""

    def factory() -> Any:
        value = os.getenv(name)
        if value is None or value == "":
            return default
        if isinstance(default, bool):
            return value.strip().lower() in {"1", "true", "yes", "y", "on"}
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        return value

    return factory


class DatabaseConfig(BaseModel):
    """Database configuration settings."""

    database_url: str = Field(default_factory=_env("DATABASE_URL", ""))
    postgres_user: str = Field(default_factory=_env("POSTGRES_USER", "petstory"))
    postgres_password: str = Field(
        default_factory=_env("POSTGRES_PASSWORD", "petstory_password")
    )
    postgres_db: str = Field(default_factory=_env("POSTGRES_DB", "petstory"))
    postgres_host: str = Field(default_factory=_env("POSTGRES_HOST", "localhost"))
    postgres_port: str = Field(default_factory=_env("POSTGRES_PORT", "5432"))
    echo: bool = Field(default_factory=_env("DATABASE_ECHO", False))

    @property
    def url(self) -> str:
        """Return ``DATABASE_URL`` if set, else the assembled PostgreSQL URL."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}@"
            f"{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


class SystemConfig(BaseModel):
    """System configuration settings."""

    log_level: str = Field(default_factory=_env("PETSTORY_LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=_env("PETSTORY_LOG_FORMAT", ""))
    log_file: str = Field(default_factory=_env("PETSTORY_LOG_FILE", ""))
    port: int = Field(default_factory=_env("PORT", 8000))
    disable_auth: bool = Field(default_factory=_env("PETSTORY_DISABLE_AUTH", False))
    admin_token: str = Field(default_factory=_env("PETSTORY_ADMIN_TOKEN", "changeme"))
    create_schema: bool = Field(default_factory=_env("PETSTORY_CREATE_SCHEMA", True))


class RetryConfig(BaseModel):
    """Retry configuration for startup database checks."""

    retry_attempts: int = Field(default_factory=_env("RETRY_ATTEMPTS", 20))
    retry_backoff: float = Field(default_factory=_env("RETRY_BACKOFF", 0.5))
    retry_max_interval: float = Field(default_factory=_env("RETRY_MAX_INTERVAL", 10.0))


class StoryConfig(BaseModel):
    """Narrative engine settings."""

    # Upper bound on chapters + events accepted by a single import.
    max_import_nodes: int = Field(default_factory=_env("STORY_MAX_IMPORT_NODES", 5000))


class PetstoryConfig(BaseModel):
    """Main configuration class."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    story: StoryConfig = Field(default_factory=StoryConfig)

    @classmethod
    def load(cls) -> PetstoryConfig:
        """Load configuration from environment variables."""
        return cls()


# Global configuration instance
config = PetstoryConfig.load()
