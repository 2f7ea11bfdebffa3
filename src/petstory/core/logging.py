# src/petstory/core/logging.py
"""Logging helpers for petstory."""

import json
import logging
import sys
from pathlib import Path

from petstory.config import config

_LOGGING_INITIALIZED = False

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            try:
                json.dumps(value)
                data[key] = value
            except (TypeError, ValueError):
                data[key] = str(value)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def _plain_formatter() -> logging.Formatter:
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )


def init_logging(
    level: str | None = None,
    format: str | None = None,
    include_trace: bool = False,
) -> None:
    """
    Initialize global logging configuration for petstory.

    Environment variables (read through :mod:`petstory.config`):
      - PETSTORY_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR|CRITICAL (default INFO)
      - PETSTORY_LOG_FORMAT: plain|rich|json (default: rich)
      - PETSTORY_LOG_FILE: optional path for an additional plain-text log file
    """
    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return

    resolved_level = (level or config.system.log_level or "INFO").upper()
    resolved_format = (format or config.system.log_format or "").lower()
    log_level = logging.getLevelName(resolved_level)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    # Root logger cleanup
    root = logging.getLogger()
    root.setLevel(log_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    if not resolved_format:
        resolved_format = "rich"

    handler: logging.Handler
    if resolved_format == "json":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
    elif resolved_format == "rich":
        from rich.logging import RichHandler

        handler = RichHandler(
            level=log_level,
            rich_tracebacks=include_trace,
            show_time=True,
            show_level=True,
            show_path=False,
            markup=False,
        )
        # RichHandler shows time/level itself
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_plain_formatter())
    handler.setLevel(log_level)
    root.addHandler(handler)

    if config.system.log_file:
        file_handler = logging.FileHandler(Path(config.system.log_file), encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(file_handler)

    # Reduce noisy libraries
    for noisy in ("uvicorn.access", "asyncio", "httpx", "aiosqlite"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))
    if not config.database.echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    from petstory import __version__

    logging.getLogger("petstory.start").info(
        "Initializing logging | version=%s level=%s format=%s",
        __version__,
        resolved_level,
        resolved_format,
    )

    _LOGGING_INITIALIZED = True


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger with the provided name, or the package root if None.
    """
    return logging.getLogger(name or "petstory")
