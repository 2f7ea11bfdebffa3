# src/petstory/canon/__init__.py
"""Database access helpers for the content and progress stores."""

from .db import (
    dispose_engine,
    ensure_schema,
    get_engine,
    get_pg,
    init_engine,
    ping,
    transaction,
)

__all__ = [
    "dispose_engine",
    "ensure_schema",
    "get_engine",
    "get_pg",
    "init_engine",
    "ping",
    "transaction",
]
