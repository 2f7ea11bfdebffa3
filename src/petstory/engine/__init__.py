# src/petstory/engine/__init__.py
"""Graph consistency and traversal engines."""

from . import consistency, stats, traversal

__all__ = ["consistency", "stats", "traversal"]
