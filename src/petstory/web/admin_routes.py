# src/petstory/web/admin_routes.py
"""Authoring endpoints for plots, chapters and events."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from petstory.canon import crud
from petstory.core.logs import EventFilter, EventType, get_event_logger
from petstory.engine import consistency, stats
from petstory.models import (
    Chapter,
    ChapterCreate,
    ChapterDetail,
    ChapterUpdate,
    Event,
    EventCreate,
    EventUpdate,
    ImportRequest,
    ImportResult,
    Plot,
    PlotCreate,
    PlotDetail,
    PlotUpdate,
)
from petstory.web.deps import get_session, require_admin

router = APIRouter(
    prefix="/api/admin/story",
    tags=["admin-story"],
    dependencies=[Depends(require_admin)],
)


# Plots -------------------------------------------------------------------------


@router.get("/plots")
async def get_all_plots(session: AsyncSession = Depends(get_session)) -> list[dict[str, Any]]:
    plots = await crud.list_plots(session)
    return [Plot.model_validate(plot).to_wire() for plot in plots]


@router.get("/plots/{plot_id}")
async def get_plot_detail(
    plot_id: UUID, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    """A plot together with all of its chapters."""
    plot = await crud.require_plot(session, plot_id)
    chapters = await crud.chapters_for_plot(session, plot_id)
    detail = PlotDetail(
        **Plot.model_validate(plot).model_dump(),
        chapters=[Chapter.model_validate(ch) for ch in chapters],
    )
    return detail.to_wire()


@router.post("/plots", status_code=status.HTTP_201_CREATED)
async def create_plot(
    body: PlotCreate, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    plot = await consistency.create_plot(session, body)
    return Plot.model_validate(plot).to_wire()


@router.put("/plots/{plot_id}")
async def update_plot(
    plot_id: UUID, body: PlotUpdate, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    plot = await consistency.update_plot(session, plot_id, body)
    return Plot.model_validate(plot).to_wire()


@router.delete("/plots/{plot_id}")
async def delete_plot(
    plot_id: UUID, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    """Delete a plot with its chapters, events and all player progress."""
    await consistency.delete_plot(session, plot_id)
    return {"deleted": str(plot_id)}


# Chapters ----------------------------------------------------------------------


@router.get("/chapters/{chapter_id}")
async def get_chapter_detail(
    chapter_id: UUID, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    chapter = await crud.require_chapter(session, chapter_id)
    events = await crud.events_for_chapter(session, chapter_id)
    detail = ChapterDetail(
        **Chapter.model_validate(chapter).model_dump(),
        events=[Event.model_validate(ev) for ev in events],
    )
    return detail.to_wire()


@router.post("/chapters", status_code=status.HTTP_201_CREATED)
async def create_chapter(
    body: ChapterCreate, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    chapter = await consistency.create_chapter(session, body)
    return Chapter.model_validate(chapter).to_wire()


@router.put("/chapters/{chapter_id}")
async def update_chapter(
    chapter_id: UUID, body: ChapterUpdate, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    chapter = await consistency.update_chapter(session, chapter_id, body)
    return Chapter.model_validate(chapter).to_wire()


@router.delete("/chapters/{chapter_id}")
async def delete_chapter(
    chapter_id: UUID, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    await consistency.delete_chapter(session, chapter_id)
    return {"deleted": str(chapter_id)}


# Events ------------------------------------------------------------------------


@router.get("/events/{event_id}")
async def get_event_detail(
    event_id: UUID, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    ev = await crud.require_event(session, event_id)
    return Event.model_validate(ev).to_wire()


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventCreate, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    ev = await consistency.create_event(session, body)
    return Event.model_validate(ev).to_wire()


@router.put("/events/{event_id}")
async def update_event(
    event_id: UUID, body: EventUpdate, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    ev = await consistency.update_event(session, event_id, body)
    return Event.model_validate(ev).to_wire()


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: UUID, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    await consistency.delete_event(session, event_id)
    return {"deleted": str(event_id)}


# Progress, export and import ------------------------------------------------------


@router.get("/progress-stats")
async def get_progress_stats(
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """Per-plot user counts by progress status."""
    return [item.to_wire() for item in await stats.progress_stats(session)]


@router.get("/export/{plot_id}")
async def export_story(
    plot_id: UUID, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    snapshot = await consistency.export_plot(session, plot_id)
    return snapshot.to_wire()


@router.post("/import", status_code=status.HTTP_201_CREATED)
async def import_story(
    body: ImportRequest, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    """Recreate an exported plot under fresh ids."""
    plot_id = await consistency.import_plot(session, body.story_config)
    return ImportResult(plot_id=plot_id).to_wire()


@router.get("/logs")
async def get_event_log(
    limit: int = Query(default=100, ge=1, le=1000),
    event_type: EventType | None = Query(default=None, alias="eventType"),
    user_id: str | None = Query(default=None, alias="userId"),
    plot_id: UUID | None = Query(default=None, alias="plotId"),
) -> dict[str, Any]:
    """Recent structured events with the logger's counters."""
    event_logger = get_event_logger()
    event_filter = EventFilter(
        event_types={event_type} if event_type is not None else None,
        user_ids={user_id} if user_id is not None else None,
        plot_ids={str(plot_id)} if plot_id is not None else None,
    )
    events = event_logger.get_events(event_filter, limit=limit)
    return {
        "metrics": event_logger.get_metrics(),
        "events": [event.to_dict() for event in events],
    }


__all__ = ["router"]
