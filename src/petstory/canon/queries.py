# src/petstory/canon/queries.py
"""Ordering, aggregation and reference queries over the story graph."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import Text, cast, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from petstory.models import (
    ChapterSQL,
    EventSQL,
    ProgressChapterSQL,
    ProgressEventSQL,
    ProgressStatus,
    StoryEventType,
    UserStoryProgressSQL,
)


async def first_active_chapter(session: AsyncSession, plot_id: UUID) -> ChapterSQL | None:
    """Return the lowest-``sort_order`` active chapter of ``plot_id``."""
    result = await session.execute(
        select(ChapterSQL)
        .where(ChapterSQL.plot_id == plot_id, ChapterSQL.is_active.is_(True))
        .order_by(ChapterSQL.sort_order, ChapterSQL.created_at, ChapterSQL.id)
        .limit(1)
    )
    return result.scalars().first()


async def first_active_event(session: AsyncSession, chapter_id: UUID) -> EventSQL | None:
    """Return the lowest-``sort_order`` active event of ``chapter_id``."""
    result = await session.execute(
        select(EventSQL)
        .where(EventSQL.chapter_id == chapter_id, EventSQL.is_active.is_(True))
        .order_by(EventSQL.sort_order, EventSQL.created_at, EventSQL.id)
        .limit(1)
    )
    return result.scalars().first()


async def active_event_ids(session: AsyncSession, chapter_id: UUID) -> list[UUID]:
    result = await session.execute(
        select(EventSQL.id).where(
            EventSQL.chapter_id == chapter_id, EventSQL.is_active.is_(True)
        )
    )
    return list(result.scalars().all())


async def next_open_chapter(
    session: AsyncSession, plot_id: UUID, completed: Iterable[UUID]
) -> tuple[ChapterSQL, EventSQL] | None:
    """Return the first active chapter outside ``completed`` that has an active
    event, together with that event."""
    done = set(completed)
    result = await session.execute(
        select(ChapterSQL)
        .where(ChapterSQL.plot_id == plot_id, ChapterSQL.is_active.is_(True))
        .order_by(ChapterSQL.sort_order, ChapterSQL.created_at, ChapterSQL.id)
    )
    for chapter in result.scalars().all():
        if chapter.id in done:
            continue
        ev = await first_active_event(session, chapter.id)
        if ev is not None:
            return chapter, ev
    return None


async def count_progress_by_status(
    session: AsyncSession,
) -> dict[UUID, dict[ProgressStatus, int]]:
    """Return ``{plot_id: {status: count}}`` over all progress rows."""
    result = await session.execute(
        select(
            UserStoryProgressSQL.plot_id,
            UserStoryProgressSQL.status,
            func.count(UserStoryProgressSQL.id),
        ).group_by(UserStoryProgressSQL.plot_id, UserStoryProgressSQL.status)
    )
    counts: dict[UUID, dict[ProgressStatus, int]] = defaultdict(dict)
    for plot_id, status, total in result.all():
        counts[plot_id][ProgressStatus(status)] = total
    return dict(counts)


# Reference repair ------------------------------------------------------------


async def null_next_event_refs(session: AsyncSession, event_ids: Iterable[UUID]) -> int:
    """Clear ``next_event_id`` on every event pointing into ``event_ids``."""
    ids = list(event_ids)
    if not ids:
        return 0
    result = await session.execute(
        update(EventSQL)
        .where(EventSQL.next_event_id.in_(ids))
        .values(next_event_id=None)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


def _json_mentions(column, ids: Iterable[str]):
    """Match rows whose JSON document text contains any of ``ids``."""
    return or_(*(cast(column, Text).contains(value) for value in ids))


async def null_choice_refs(session: AsyncSession, event_ids: Iterable[UUID]) -> int:
    """Clear choice targets pointing into ``event_ids``.

    Choices live inside the JSON ``content`` document. The database narrows
    candidates to MULTI_CHOICE events whose content mentions a target id;
    those are then checked and rewritten in Python.
    """
    targets = {str(eid) for eid in event_ids}
    if not targets:
        return 0
    result = await session.execute(
        select(EventSQL).where(
            EventSQL.event_type == StoryEventType.MULTI_CHOICE,
            _json_mentions(EventSQL.content, targets),
        )
    )
    touched = 0
    for ev in result.scalars().all():
        choices = ev.choices
        if not any(str(choice.get("nextEventId")) in targets for choice in choices):
            continue
        ev.content = {
            **(ev.content or {}),
            "choices": [
                {**choice, "nextEventId": None}
                if str(choice.get("nextEventId")) in targets
                else choice
                for choice in choices
            ],
        }
        touched += 1
    await session.flush()
    return touched


async def clear_previous_chapter_refs(
    session: AsyncSession, chapter_ids: Iterable[UUID]
) -> int:
    """Clear ``requirement.previousChapter`` where it names one of ``chapter_ids``."""
    ids = set(chapter_ids)
    if not ids:
        return 0
    result = await session.execute(
        select(ChapterSQL).where(
            ChapterSQL.id.not_in(ids),
            _json_mentions(ChapterSQL.requirement, {str(cid) for cid in ids}),
        )
    )
    touched = 0
    for chapter in result.scalars().all():
        if chapter.previous_chapter_id not in ids:
            continue
        chapter.requirement = {**(chapter.requirement or {}), "previousChapter": None}
        touched += 1
    await session.flush()
    return touched


async def null_current_chapter_refs(
    session: AsyncSession, chapter_ids: Iterable[UUID]
) -> int:
    ids = list(chapter_ids)
    if not ids:
        return 0
    result = await session.execute(
        update(UserStoryProgressSQL)
        .where(UserStoryProgressSQL.current_chapter_id.in_(ids))
        .values(current_chapter_id=None)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def null_current_event_refs(session: AsyncSession, event_ids: Iterable[UUID]) -> int:
    ids = list(event_ids)
    if not ids:
        return 0
    result = await session.execute(
        update(UserStoryProgressSQL)
        .where(UserStoryProgressSQL.current_event_id.in_(ids))
        .values(current_event_id=None)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def prune_completed_chapters(
    session: AsyncSession, chapter_ids: Iterable[UUID]
) -> int:
    ids = list(chapter_ids)
    if not ids:
        return 0
    result = await session.execute(
        ProgressChapterSQL.__table__.delete().where(
            ProgressChapterSQL.__table__.c.chapter_id.in_(ids)
        )
    )
    return result.rowcount or 0


async def prune_completed_events(session: AsyncSession, event_ids: Iterable[UUID]) -> int:
    ids = list(event_ids)
    if not ids:
        return 0
    result = await session.execute(
        ProgressEventSQL.__table__.delete().where(
            ProgressEventSQL.__table__.c.event_id.in_(ids)
        )
    )
    return result.rowcount or 0


__all__ = [
    "active_event_ids",
    "clear_previous_chapter_refs",
    "count_progress_by_status",
    "first_active_chapter",
    "first_active_event",
    "next_open_chapter",
    "null_choice_refs",
    "null_current_chapter_refs",
    "null_current_event_refs",
    "null_next_event_refs",
    "prune_completed_chapters",
    "prune_completed_events",
]
