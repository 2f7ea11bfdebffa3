# src/petstory/core/errors.py
"""Exceptions raised by the narrative engines."""

from __future__ import annotations

from typing import Any


class StoryError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "STORY_ERROR"
    status_code = 500

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class NotFound(StoryError):
    """An entity id does not resolve."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any, message: str | None = None) -> None:
        super().__init__(
            message or f"{entity} {entity_id} not found",
            entity=entity,
            id=str(entity_id),
        )


class InvalidReference(StoryError):
    """A supplied foreign id does not exist."""

    code = "INVALID_REFERENCE"
    status_code = 400

    def __init__(self, field: str, ref_id: Any) -> None:
        super().__init__(
            f"{field} references missing id {ref_id}", field=field, id=str(ref_id)
        )


class InvalidState(StoryError):
    """The submitted event is not the caller's current event."""

    code = "INVALID_STATE"
    status_code = 409


class NotStarted(StoryError):
    """Traversal queried before the plot was started."""

    code = "NOT_STARTED"
    status_code = 404


class TransactionAborted(StoryError):
    """A multi-entity mutation failed and was rolled back."""

    code = "TRANSACTION_ABORTED"
    status_code = 500

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"{operation} aborted and rolled back: {reason}",
            operation=operation,
        )
        self.operation = operation


__all__ = [
    "InvalidReference",
    "InvalidState",
    "NotFound",
    "NotStarted",
    "StoryError",
    "TransactionAborted",
]
