# src/petstory/web/__init__.py
"""HTTP surface for players and authors."""
