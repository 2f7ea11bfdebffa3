"""Narrative progression engine for the pet-social app backend."""

__version__ = "0.1.0"
