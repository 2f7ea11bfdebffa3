# src/petstory/bootstrap.py
"""Service bootstrap orchestrator.

Loads environment config, waits for the database, ensures the schema and
exposes readiness and status inspection for the ``/ready`` endpoint.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from petstory.canon.db import ensure_schema, ping
from petstory.config import config
from petstory.core.env import load_env
from petstory.core.logging import get_logger

_IS_READY: bool = False


@dataclass
class _BootstrapStatus:
    started_at: float = 0.0
    finished_at: float | None = None
    db_ready: bool = False
    schema_ready: bool = False
    steps: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None


_STATUS = _BootstrapStatus()

logger = get_logger(__name__)


class BootstrapError(RuntimeError):
    """Bootstrap failed unexpectedly."""


def _set_readiness(flag: bool) -> None:
    global _IS_READY
    _IS_READY = flag


def is_ready() -> bool:
    """Return True if bootstrap completed successfully."""
    return _IS_READY


def bootstrap_status() -> dict[str, object]:
    """Return a copy of current bootstrap status."""
    return asdict(_STATUS)


def reset_bootstrap() -> None:
    """Forget readiness so the next :func:`bootstrap_all` runs again."""
    global _STATUS
    _STATUS = _BootstrapStatus()
    _set_readiness(False)


async def _wait_for_database(*, attempts: int, backoff: float, max_interval: float) -> None:
    """Run ``SELECT 1`` until it succeeds, backing off exponentially."""
    attempt_no = 0
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=backoff, max=max_interval),
            retry=retry_if_exception_type(Exception),
        ):
            with attempt:
                attempt_no = attempt.retry_state.attempt_number
                try:
                    await ping()
                except Exception as exc:
                    _STATUS.steps.append(
                        {"step": "db_wait", "attempt": attempt_no, "error": str(exc)}
                    )
                    logger.warning("bootstrap.db.retry", extra={"attempt": attempt_no})
                    raise
    except RetryError as exc:
        raise BootstrapError(
            f"Database not reachable after {attempt_no} attempts"
        ) from exc
    _STATUS.db_ready = True
    logger.info("bootstrap.db.ready", extra={"attempt": attempt_no})


async def bootstrap_all(*, create_schema: bool | None = None) -> None:
    """Run the full bootstrap sequence, failing fast on irrecoverable errors.

    Steps:
      1) Load environment
      2) Wait for the database
      3) Create missing tables (unless disabled)
      4) Mark ready
    """
    if is_ready():
        logger.info("bootstrap.already_ready")
        return

    _STATUS.started_at = time.time()
    _STATUS.finished_at = None
    _STATUS.steps.clear()
    _STATUS.error = None
    _set_readiness(False)

    logger.info("bootstrap.env.load")
    load_env()

    try:
        await _wait_for_database(
            attempts=config.retry.retry_attempts,
            backoff=config.retry.retry_backoff,
            max_interval=config.retry.retry_max_interval,
        )
        if config.system.create_schema if create_schema is None else create_schema:
            await ensure_schema()
            _STATUS.schema_ready = True
            logger.info("bootstrap.schema.ready")
    except Exception as exc:
        _STATUS.error = str(exc)
        logger.error("bootstrap.failed", extra={"error": str(exc)})
        raise

    _set_readiness(True)
    _STATUS.finished_at = time.time()
    logger.info("bootstrap.ready", extra={"status": bootstrap_status()})


__all__ = [
    "BootstrapError",
    "bootstrap_all",
    "bootstrap_status",
    "is_ready",
    "reset_bootstrap",
]
