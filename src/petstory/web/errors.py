# src/petstory/web/errors.py
"""Translate engine exceptions into HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from petstory.core.errors import StoryError
from petstory.core.logs import get_event_logger

event_logger = get_event_logger()


async def story_error_handler(request: Request, exc: StoryError) -> JSONResponse:
    if exc.status_code >= 500:
        event_logger.error(
            f"{exc.code} on {request.method} {request.url.path}: {exc.message}",
            component=__name__,
            metadata={"code": exc.code, **exc.detail},
        )
    else:
        event_logger.debug(
            f"{exc.code} on {request.method} {request.url.path}",
            component=__name__,
            metadata={"code": exc.code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoryError, story_error_handler)  # type: ignore[arg-type]


__all__ = ["register_error_handlers", "story_error_handler"]
