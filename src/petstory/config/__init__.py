"""Configuration for petstory."""

from .config import (
    DatabaseConfig,
    PetstoryConfig,
    RetryConfig,
    StoryConfig,
    SystemConfig,
    config,
)

__all__ = [
    "DatabaseConfig",
    "PetstoryConfig",
    "RetryConfig",
    "StoryConfig",
    "SystemConfig",
    "config",
]
