# src/petstory/canon/crud.py
"""Create/read/update/delete helpers for the content and progress stores.

Every helper works on a caller-supplied session and never commits; the
engines decide where a unit of work ends.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from petstory.core.errors import NotFound
from petstory.core.logs import get_event_logger
from petstory.models import (
    ChapterSQL,
    EventSQL,
    PlotSQL,
    ProgressChapterSQL,
    ProgressEventSQL,
    ProgressStatus,
    UserStoryProgressSQL,
)

# Initialize EventLogger for database operations
event_logger = get_event_logger()


def apply_changes(entity: Any, changes: dict[str, Any]) -> Any:
    """Copy ``changes`` onto ``entity`` attribute by attribute."""
    for key, value in changes.items():
        setattr(entity, key, value)
    return entity


# Plots ---------------------------------------------------------------------


async def require_plot(
    session: AsyncSession, plot_id: UUID, *, active_only: bool = False
) -> PlotSQL:
    """Return the plot or raise :class:`NotFound`."""
    plot = await session.get(PlotSQL, plot_id)
    if plot is None or (active_only and not plot.is_active):
        raise NotFound("Plot", plot_id)
    return plot


async def list_plots(session: AsyncSession, *, active_only: bool = False) -> list[PlotSQL]:
    """Return plots, main story first, then by ``sort_order``."""
    stmt = select(PlotSQL).order_by(
        PlotSQL.is_main_story.desc(), PlotSQL.sort_order, PlotSQL.created_at
    )
    if active_only:
        stmt = stmt.where(PlotSQL.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def add_plot(session: AsyncSession, **values: Any) -> PlotSQL:
    plot = PlotSQL(**values)
    session.add(plot)
    await session.flush()
    event_logger.log_db_operation(
        f"Inserted plot {plot.id}", operation="insert", table="story_plot"
    )
    return plot


async def delete_plot_row(session: AsyncSession, plot_id: UUID) -> int:
    result = await session.execute(delete(PlotSQL).where(PlotSQL.id == plot_id))
    return result.rowcount or 0


# Chapters ------------------------------------------------------------------


async def get_chapter(session: AsyncSession, chapter_id: UUID) -> ChapterSQL | None:
    return await session.get(ChapterSQL, chapter_id)


async def require_chapter(session: AsyncSession, chapter_id: UUID) -> ChapterSQL:
    chapter = await session.get(ChapterSQL, chapter_id)
    if chapter is None:
        raise NotFound("Chapter", chapter_id)
    return chapter


async def chapters_for_plot(
    session: AsyncSession, plot_id: UUID, *, active_only: bool = False
) -> list[ChapterSQL]:
    """Return the plot's chapters in presentation order."""
    stmt = (
        select(ChapterSQL)
        .where(ChapterSQL.plot_id == plot_id)
        .order_by(ChapterSQL.sort_order, ChapterSQL.created_at, ChapterSQL.id)
    )
    if active_only:
        stmt = stmt.where(ChapterSQL.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def chapter_ids_for_plot(session: AsyncSession, plot_id: UUID) -> list[UUID]:
    result = await session.execute(
        select(ChapterSQL.id).where(ChapterSQL.plot_id == plot_id)
    )
    return list(result.scalars().all())


async def add_chapter(session: AsyncSession, **values: Any) -> ChapterSQL:
    chapter = ChapterSQL(**values)
    session.add(chapter)
    await session.flush()
    event_logger.log_db_operation(
        f"Inserted chapter {chapter.id}", operation="insert", table="story_chapter"
    )
    return chapter


async def delete_chapter_rows(session: AsyncSession, chapter_ids: Iterable[UUID]) -> int:
    ids = list(chapter_ids)
    if not ids:
        return 0
    result = await session.execute(delete(ChapterSQL).where(ChapterSQL.id.in_(ids)))
    return result.rowcount or 0


# Events --------------------------------------------------------------------


async def get_event(session: AsyncSession, event_id: UUID) -> EventSQL | None:
    return await session.get(EventSQL, event_id)


async def require_event(session: AsyncSession, event_id: UUID) -> EventSQL:
    ev = await session.get(EventSQL, event_id)
    if ev is None:
        raise NotFound("Event", event_id)
    return ev


async def events_for_chapter(
    session: AsyncSession, chapter_id: UUID, *, active_only: bool = False
) -> list[EventSQL]:
    stmt = (
        select(EventSQL)
        .where(EventSQL.chapter_id == chapter_id)
        .order_by(EventSQL.sort_order, EventSQL.created_at, EventSQL.id)
    )
    if active_only:
        stmt = stmt.where(EventSQL.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def events_for_chapters(
    session: AsyncSession, chapter_ids: Iterable[UUID]
) -> list[EventSQL]:
    ids = list(chapter_ids)
    if not ids:
        return []
    result = await session.execute(
        select(EventSQL)
        .where(EventSQL.chapter_id.in_(ids))
        .order_by(EventSQL.sort_order, EventSQL.created_at, EventSQL.id)
    )
    return list(result.scalars().all())


async def event_ids_for_chapters(
    session: AsyncSession, chapter_ids: Iterable[UUID]
) -> list[UUID]:
    ids = list(chapter_ids)
    if not ids:
        return []
    result = await session.execute(select(EventSQL.id).where(EventSQL.chapter_id.in_(ids)))
    return list(result.scalars().all())


async def existing_event_ids(session: AsyncSession, event_ids: Iterable[UUID]) -> set[UUID]:
    """Return the subset of ``event_ids`` that name stored events."""
    ids = set(event_ids)
    if not ids:
        return set()
    result = await session.execute(select(EventSQL.id).where(EventSQL.id.in_(ids)))
    return set(result.scalars().all())


async def add_event(session: AsyncSession, **values: Any) -> EventSQL:
    ev = EventSQL(**values)
    session.add(ev)
    await session.flush()
    event_logger.log_db_operation(
        f"Inserted event {ev.id}", operation="insert", table="story_event"
    )
    return ev


async def delete_event_rows(session: AsyncSession, event_ids: Iterable[UUID]) -> int:
    ids = list(event_ids)
    if not ids:
        return 0
    result = await session.execute(delete(EventSQL).where(EventSQL.id.in_(ids)))
    return result.rowcount or 0


# Progress ------------------------------------------------------------------


async def get_progress(
    session: AsyncSession, user_id: str, plot_id: UUID
) -> UserStoryProgressSQL | None:
    result = await session.execute(
        select(UserStoryProgressSQL).where(
            UserStoryProgressSQL.user_id == user_id,
            UserStoryProgressSQL.plot_id == plot_id,
        )
    )
    return result.scalar_one_or_none()


async def progress_for_user(
    session: AsyncSession, user_id: str
) -> dict[UUID, UserStoryProgressSQL]:
    """Return the user's progress rows keyed by plot id."""
    result = await session.execute(
        select(UserStoryProgressSQL).where(UserStoryProgressSQL.user_id == user_id)
    )
    return {row.plot_id: row for row in result.scalars().all()}


async def add_progress(
    session: AsyncSession,
    user_id: str,
    plot_id: UUID,
    *,
    status: ProgressStatus = ProgressStatus.NOT_STARTED,
    **values: Any,
) -> UserStoryProgressSQL:
    progress = UserStoryProgressSQL(
        user_id=user_id,
        plot_id=plot_id,
        status=status,
        user_choices=[],
        completed_chapter_links=[],
        completed_event_links=[],
        **values,
    )
    session.add(progress)
    await session.flush()
    event_logger.log_db_operation(
        "Created progress record",
        operation="insert",
        table="user_story_progress",
        user_id=user_id,
        plot_id=str(plot_id),
    )
    return progress


async def delete_progress_for_plot(session: AsyncSession, plot_id: UUID) -> int:
    """Delete every progress row of ``plot_id`` along with its completion sets."""
    progress_ids = select(UserStoryProgressSQL.id).where(
        UserStoryProgressSQL.plot_id == plot_id
    )
    await session.execute(
        delete(ProgressChapterSQL)
        .where(ProgressChapterSQL.progress_id.in_(progress_ids))
        .execution_options(synchronize_session=False)
    )
    await session.execute(
        delete(ProgressEventSQL)
        .where(ProgressEventSQL.progress_id.in_(progress_ids))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(
        delete(UserStoryProgressSQL).where(UserStoryProgressSQL.plot_id == plot_id)
    )
    return result.rowcount or 0


__all__ = [
    "add_chapter",
    "add_event",
    "add_plot",
    "add_progress",
    "apply_changes",
    "chapter_ids_for_plot",
    "chapters_for_plot",
    "delete_chapter_rows",
    "delete_event_rows",
    "delete_plot_row",
    "delete_progress_for_plot",
    "event_ids_for_chapters",
    "events_for_chapter",
    "events_for_chapters",
    "existing_event_ids",
    "get_chapter",
    "get_event",
    "get_progress",
    "list_plots",
    "progress_for_user",
    "require_chapter",
    "require_event",
    "require_plot",
]
