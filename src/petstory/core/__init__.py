"""Core utilities for petstory."""

from .env import load_env
from .errors import (
    InvalidReference,
    InvalidState,
    NotFound,
    NotStarted,
    StoryError,
    TransactionAborted,
)
from .logs import clear_logs, get_event_logger

__all__ = [
    "load_env",
    "get_event_logger",
    "clear_logs",
    "StoryError",
    "NotFound",
    "InvalidReference",
    "InvalidState",
    "NotStarted",
    "TransactionAborted",
]
