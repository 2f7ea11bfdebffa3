# scripts/init_db.py
"""Bring the database schema up to date with Alembic."""

from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command as alembic_command  # type: ignore[attr-defined]
from alembic.config import Config

from petstory.config import config
from petstory.core.logging import get_logger, init_logging

logger = get_logger(__name__)


def alembic_config() -> Config:
    root = Path(__file__).resolve().parents[1]
    cfg = Config(str(root / "alembic.ini"))
    cfg.set_main_option("script_location", str(root / "alembic"))
    cfg.set_main_option("sqlalchemy.url", config.database.url.replace("%", "%%"))
    return cfg


def init_db(revision: str = "head") -> None:
    """Upgrade the configured database to ``revision``."""
    logger.info("Applying Alembic migrations up to %s", revision)
    try:
        alembic_command.upgrade(alembic_config(), revision)  # type: ignore[arg-type]
    except Exception as e:
        logger.exception("Failed to apply Alembic migrations: %s", e)
        raise
    logger.info("Alembic migrations applied successfully")


if __name__ == "__main__":  # pragma: no cover - CLI execution
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("revision", nargs="?", default="head")
    args = parser.parse_args()
    init_logging()
    init_db(args.revision)
