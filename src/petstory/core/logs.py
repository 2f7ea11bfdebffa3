# src/petstory/core/logs.py
"""Structured event logging for store, engine and web operations.

Events are kept in an in-memory ring buffer for inspection (admin tooling and
tests) and mirrored to the standard :mod:`logging` hierarchy under the
``petstory`` logger so that whatever handler :func:`init_logging` installed
renders them.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, cast
from uuid import uuid4


class LogLevel(Enum):
    """Log levels with numeric values for filtering."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class EventType(Enum):
    """Structured event types."""

    SYSTEM = "system"
    DATABASE_OPERATION = "database_operation"
    STORY_AUTHORING = "story_authoring"
    STORY_TRAVERSAL = "story_traversal"
    USER_ACTION = "user_action"
    PERFORMANCE = "performance"
    ERROR = "error"
    WARNING = "warning"
    ERROR_HANDLING_START = "error_handling_start"
    ERROR_ROLLBACK = "error_rollback"


class Priority(Enum):
    """Event priority levels."""

    CRITICAL = 1  # Errors, rollbacks
    HIGH = 2  # User actions, authoring mutations
    NORMAL = 3  # Store round-trips
    LOW = 4  # Debug tracing


@dataclass
class EventMetrics:
    """Counters for emitted events."""

    total_events: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)
    events_by_priority: dict[int, int] = field(default_factory=dict)

    def record_event(self, event_type: str, priority: int) -> None:
        """Record an event for metrics tracking."""
        self.total_events += 1
        self.events_by_type[event_type] = self.events_by_type.get(event_type, 0) + 1
        self.events_by_priority[priority] = self.events_by_priority.get(priority, 0) + 1


@dataclass
class StructuredLogEvent:
    """Structured log event with metadata."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: float = field(default_factory=time.time)
    event_type: EventType = EventType.SYSTEM
    level: LogLevel = LogLevel.INFO
    priority: Priority = Priority.NORMAL
    message: str = ""
    component: str | None = None
    user_id: str | None = None
    plot_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "event_type": self.event_type.value,
            "level": self.level.name,
            "priority": self.priority.name,
            "message": self.message,
            "component": self.component,
            "user_id": self.user_id,
            "plot_id": self.plot_id,
            "metadata": self.metadata,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class EventFilter:
    """Filter for structured log events."""

    def __init__(
        self,
        min_level: LogLevel = LogLevel.DEBUG,
        event_types: set[EventType] | None = None,
        user_ids: set[str] | None = None,
        plot_ids: set[str] | None = None,
        metadata_filters: dict[str, Any] | None = None,
    ):
        self.min_level = min_level
        self.event_types = event_types
        self.user_ids = user_ids
        self.plot_ids = plot_ids
        self.metadata_filters = metadata_filters or {}

    def matches(self, event: StructuredLogEvent) -> bool:
        """Check if event matches this filter."""
        if event.level.value < self.min_level.value:
            return False
        if self.event_types is not None and event.event_type not in self.event_types:
            return False
        if self.user_ids is not None and event.user_id not in self.user_ids:
            return False
        if self.plot_ids is not None and event.plot_id not in self.plot_ids:
            return False
        for key, expected_value in self.metadata_filters.items():
            if event.metadata.get(key) != expected_value:
                return False
        return True


class EventLogger:
    """Structured logging front end.

    Every event is recorded in a bounded buffer, counted in
    :class:`EventMetrics` and forwarded to the ``petstory`` logger.
    """

    def __init__(self, max_events: int = 10000):
        self.max_events = max_events
        self._events: deque[StructuredLogEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._metrics = EventMetrics()
        self._traditional_logger = logging.getLogger("petstory")

    def log_event(self, event: StructuredLogEvent) -> None:
        """Record ``event`` and mirror it to the traditional logger."""
        with self._lock:
            self._metrics.record_event(event.event_type.value, event.priority.value)
            self._events.append(event)
        self._log_to_traditional(event)

    def _log_to_traditional(self, event: StructuredLogEvent) -> None:
        context = []
        if event.component:
            context.append(f"comp:{event.component.replace('petstory.', '')}")
        if event.user_id:
            context.append(f"user:{event.user_id}")
        if event.plot_id:
            context.append(f"plot:{event.plot_id}")
        operation = event.metadata.get("operation")
        if operation:
            context.append(f"op:{operation}")
        header = f"[{event.event_type.value.upper()}]"
        if context:
            header = f"{header} ({' | '.join(context)})"
        self._traditional_logger.log(event.level.value, "%s %s", header, event.message)

    def log(
        self,
        level: LogLevel,
        message: str,
        event_type: EventType = EventType.SYSTEM,
        priority: Priority = Priority.NORMAL,
        component: str | None = None,
        user_id: str | None = None,
        plot_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Log a message with structured metadata."""
        self.log_event(
            StructuredLogEvent(
                level=level,
                event_type=event_type,
                priority=priority,
                message=message,
                component=component,
                user_id=str(user_id) if user_id is not None else None,
                plot_id=str(plot_id) if plot_id is not None else None,
                metadata=metadata or {},
            )
        )

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log(LogLevel.DEBUG, message, priority=Priority.LOW, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("event_type", EventType.WARNING)
        self.log(LogLevel.WARNING, message, priority=Priority.HIGH, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("event_type", EventType.ERROR)
        self.log(LogLevel.ERROR, message, priority=Priority.CRITICAL, **kwargs)

    def log_db_operation(self, message: str, operation: str, **metadata: Any) -> None:
        """Log a store round-trip."""
        self.log(
            LogLevel.DEBUG,
            message,
            event_type=EventType.DATABASE_OPERATION,
            priority=Priority.NORMAL,
            metadata={"operation": operation, **metadata},
        )

    def log_user_action(
        self,
        action: str,
        user_id: str | None = None,
        plot_id: str | None = None,
        **metadata: Any,
    ) -> None:
        """Log a player action."""
        self.log(
            LogLevel.INFO,
            f"User action: {action}",
            event_type=EventType.USER_ACTION,
            priority=Priority.HIGH,
            user_id=user_id,
            plot_id=plot_id,
            metadata={"operation": action, **metadata},
        )

    def log_authoring(self, action: str, **metadata: Any) -> None:
        """Log an authoring mutation."""
        self.log(
            LogLevel.INFO,
            f"Authoring: {action}",
            event_type=EventType.STORY_AUTHORING,
            priority=Priority.HIGH,
            metadata={"operation": action, **metadata},
        )

    def log_error_handling_start(
        self, error_type: str, error_msg: str, context: str, **metadata: Any
    ) -> None:
        """Log the start of handling a failed operation."""
        self.log(
            LogLevel.WARNING,
            f"Handling {error_type} in {context}: {error_msg}",
            event_type=EventType.ERROR_HANDLING_START,
            priority=Priority.HIGH,
            metadata=metadata,
        )

    def log_error_rollback(self, rollback_point: str, **metadata: Any) -> None:
        """Log a transaction rollback."""
        self.log(
            LogLevel.WARNING,
            f"Rolling back {rollback_point}",
            event_type=EventType.ERROR_ROLLBACK,
            priority=Priority.CRITICAL,
            metadata={"rollback_point": rollback_point, **metadata},
        )

    def get_events(
        self, event_filter: EventFilter | None = None, limit: int | None = None
    ) -> list[StructuredLogEvent]:
        """Return stored events, optionally filtered and limited to the newest."""
        with self._lock:
            events = list(self._events)
        if event_filter:
            events = [event for event in events if event_filter.matches(event)]
        if limit:
            events = events[-limit:]
        return events

    def get_metrics(self) -> dict[str, Any]:
        """Return current event counters."""
        with self._lock:
            return {
                "total_events": self._metrics.total_events,
                "events_by_type": dict(self._metrics.events_by_type),
                "events_by_priority": dict(self._metrics.events_by_priority),
                "memory_events": len(self._events),
            }

    def clear_logs(self) -> None:
        """Clear all stored log events."""
        with self._lock:
            self._events.clear()


# Global event logger instance
_event_logger: EventLogger | None = None


def get_event_logger() -> EventLogger:
    """Get global event logger instance."""
    global _event_logger
    if _event_logger is None:
        _event_logger = EventLogger()
    return _event_logger


def log_calls(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorate ``func`` to log entry, exit and failure at DEBUG level."""
    event_logger = get_event_logger()

    if asyncio.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.time()
            event_logger.debug(
                f"Entering {func.__qualname__}", component=func.__module__
            )
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                event_logger.debug(
                    f"Error in {func.__qualname__}: {e}",
                    component=func.__module__,
                    metadata={
                        "function": func.__qualname__,
                        "error_type": type(e).__name__,
                        "duration_ms": (time.time() - start_time) * 1000,
                    },
                )
                raise
            event_logger.debug(
                f"Exiting {func.__qualname__}",
                component=func.__module__,
                metadata={
                    "function": func.__qualname__,
                    "duration_ms": (time.time() - start_time) * 1000,
                },
            )
            return result

        return cast(Callable[..., Any], async_wrapper)

    @functools.wraps(func)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            return func(*args, **kwargs)
        finally:
            event_logger.debug(
                f"Exiting {func.__qualname__}",
                component=func.__module__,
                metadata={
                    "function": func.__qualname__,
                    "duration_ms": (time.time() - start_time) * 1000,
                },
            )

    return cast(Callable[..., Any], sync_wrapper)


def clear_logs() -> None:
    """Remove all stored log messages."""
    get_event_logger().clear_logs()


__all__ = [
    "EventFilter",
    "EventLogger",
    "EventMetrics",
    "EventType",
    "LogLevel",
    "Priority",
    "StructuredLogEvent",
    "clear_logs",
    "get_event_logger",
    "log_calls",
]
