# src/petstory/core/env.py
"""Environment configuration utilities."""

from __future__ import annotations

from dotenv import load_dotenv


def load_env() -> None:
    """Load environment variables from a local ``.env`` file."""
    load_dotenv()


__all__ = ["load_env"]
