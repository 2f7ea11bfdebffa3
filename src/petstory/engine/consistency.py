# src/petstory/engine/consistency.py
"""Authoring mutations that keep the story graph referentially consistent.

Plot and chapter deletion, as well as import, run as an ordered list of
steps inside one :func:`~petstory.canon.db.transaction`; a failure in any
step rolls every earlier step back.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import yaml
from sqlalchemy.ext.asyncio import AsyncSession

from petstory.canon import crud, queries
from petstory.canon.db import get_pg, transaction
from petstory.config import config
from petstory.core.errors import InvalidReference
from petstory.core.logs import get_event_logger, log_calls
from petstory.models import (
    Chapter,
    ChapterCreate,
    ChapterRequirement,
    ChapterReward,
    ChapterSQL,
    ChapterUpdate,
    Event,
    EventContent,
    EventCreate,
    EventSQL,
    EventUpdate,
    Plot,
    PlotCreate,
    PlotSQL,
    PlotUpdate,
    StorySnapshot,
    StorySnapshotInput,
    TriggerCondition,
)
from petstory.models.sqlalchemy_models import utcnow

event_logger = get_event_logger()


@dataclass
class CascadeScope:
    """Ids affected by a cascading delete."""

    plot_id: UUID | None = None
    chapter_ids: list[UUID] = field(default_factory=list)
    event_ids: list[UUID] = field(default_factory=list)


DeleteStep = Callable[[AsyncSession, CascadeScope], Awaitable[None]]


# Validation ------------------------------------------------------------------


def _choice_targets(content: EventContent) -> list[tuple[str, UUID]]:
    return [
        (f"content.choices[{index}].nextEventId", choice.next_event_id)
        for index, choice in enumerate(content.choices)
        if choice.next_event_id is not None
    ]


async def _validate_event_refs(
    session: AsyncSession, refs: Iterable[tuple[str, UUID | None]]
) -> None:
    """Raise :class:`InvalidReference` for the first id that names no event."""
    wanted = [(name, ref) for name, ref in refs if ref is not None]
    if not wanted:
        return
    existing = await crud.existing_event_ids(session, [ref for _, ref in wanted])
    for name, ref in wanted:
        if ref not in existing:
            raise InvalidReference(name, ref)


async def _validate_requirement(
    session: AsyncSession, requirement: ChapterRequirement | None, plot_id: UUID
) -> None:
    """``previousChapter`` must name an existing chapter of ``plot_id``."""
    if requirement is None or requirement.previous_chapter is None:
        return
    previous = await crud.get_chapter(session, requirement.previous_chapter)
    if previous is None or previous.plot_id != plot_id:
        raise InvalidReference("requirement.previousChapter", requirement.previous_chapter)


# Plots -----------------------------------------------------------------------


async def create_plot(session: AsyncSession, data: PlotCreate) -> PlotSQL:
    async with transaction(session, "create_plot"):
        plot = await crud.add_plot(session, **data.model_dump())
    event_logger.log_authoring("create_plot", plot_id=str(plot.id))
    return plot


async def update_plot(session: AsyncSession, plot_id: UUID, data: PlotUpdate) -> PlotSQL:
    """Apply the supplied fields of ``data`` to the plot."""
    changes = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None
    }
    async with transaction(session, "update_plot"):
        plot = await crud.require_plot(session, plot_id)
        crud.apply_changes(plot, changes)
    event_logger.log_authoring("update_plot", plot_id=str(plot_id), fields=sorted(changes))
    return plot


# Chapters --------------------------------------------------------------------


async def create_chapter(session: AsyncSession, data: ChapterCreate) -> ChapterSQL:
    async with transaction(session, "create_chapter"):
        await crud.require_plot(session, data.plot_id)
        await _validate_requirement(session, data.requirement, data.plot_id)
        chapter = await crud.add_chapter(
            session,
            plot_id=data.plot_id,
            title=data.title,
            description=data.description,
            sort_order=data.sort_order,
            is_active=data.is_active,
            requirement=data.requirement.to_wire(),
            reward=data.reward.to_wire(),
        )
    event_logger.log_authoring(
        "create_chapter", chapter_id=str(chapter.id), plot_id=str(data.plot_id)
    )
    return chapter


async def update_chapter(
    session: AsyncSession, chapter_id: UUID, data: ChapterUpdate
) -> ChapterSQL:
    changes = {
        key: value
        for key, value in data.model_dump(
            exclude_unset=True, exclude={"requirement", "reward"}
        ).items()
        if value is not None
    }
    async with transaction(session, "update_chapter"):
        chapter = await crud.require_chapter(session, chapter_id)
        if data.requirement is not None:
            await _validate_requirement(session, data.requirement, chapter.plot_id)
            changes["requirement"] = data.requirement.to_wire()
        if data.reward is not None:
            changes["reward"] = data.reward.to_wire()
        crud.apply_changes(chapter, changes)
    event_logger.log_authoring(
        "update_chapter", chapter_id=str(chapter_id), fields=sorted(changes)
    )
    return chapter


# Events ----------------------------------------------------------------------


async def create_event(session: AsyncSession, data: EventCreate) -> EventSQL:
    async with transaction(session, "create_event"):
        await crud.require_chapter(session, data.chapter_id)
        await _validate_event_refs(
            session,
            [("nextEventId", data.next_event_id), *_choice_targets(data.content)],
        )
        ev = await crud.add_event(
            session,
            chapter_id=data.chapter_id,
            title=data.title,
            event_type=data.event_type,
            content=data.content.to_wire(),
            trigger_condition=data.trigger_condition.to_wire(),
            next_event_id=data.next_event_id,
            is_active=data.is_active,
            sort_order=data.sort_order,
        )
    event_logger.log_authoring(
        "create_event", event_id=str(ev.id), chapter_id=str(data.chapter_id)
    )
    return ev


async def update_event(session: AsyncSession, event_id: UUID, data: EventUpdate) -> EventSQL:
    """Apply the supplied fields of ``data`` to the event.

    ``nextEventId`` may be set to ``null`` explicitly to clear the successor.
    """
    supplied = data.model_fields_set
    changes: dict[str, Any] = {
        key: value
        for key, value in data.model_dump(
            exclude_unset=True, exclude={"content", "trigger_condition", "next_event_id"}
        ).items()
        if value is not None
    }
    async with transaction(session, "update_event"):
        ev = await crud.require_event(session, event_id)
        refs: list[tuple[str, UUID | None]] = []
        if "next_event_id" in supplied:
            refs.append(("nextEventId", data.next_event_id))
            changes["next_event_id"] = data.next_event_id
        if data.content is not None:
            refs.extend(_choice_targets(data.content))
            changes["content"] = data.content.to_wire()
        if data.trigger_condition is not None:
            changes["trigger_condition"] = data.trigger_condition.to_wire()
        await _validate_event_refs(session, refs)
        crud.apply_changes(ev, changes)
    event_logger.log_authoring("update_event", event_id=str(event_id), fields=sorted(changes))
    return ev


# Cascading deletes -------------------------------------------------------------


async def _detach_inbound_references(session: AsyncSession, scope: CascadeScope) -> None:
    await queries.null_next_event_refs(session, scope.event_ids)
    await queries.null_choice_refs(session, scope.event_ids)


async def _delete_events(session: AsyncSession, scope: CascadeScope) -> None:
    await crud.delete_event_rows(session, scope.event_ids)


async def _delete_chapters(session: AsyncSession, scope: CascadeScope) -> None:
    await crud.delete_chapter_rows(session, scope.chapter_ids)


async def _delete_plot_progress(session: AsyncSession, scope: CascadeScope) -> None:
    assert scope.plot_id is not None
    await crud.delete_progress_for_plot(session, scope.plot_id)


async def _delete_plot_row(session: AsyncSession, scope: CascadeScope) -> None:
    assert scope.plot_id is not None
    await crud.delete_plot_row(session, scope.plot_id)


async def _unset_current_chapter(session: AsyncSession, scope: CascadeScope) -> None:
    await queries.null_current_chapter_refs(session, scope.chapter_ids)


async def _clear_previous_chapter_refs(session: AsyncSession, scope: CascadeScope) -> None:
    await queries.clear_previous_chapter_refs(session, scope.chapter_ids)


async def _prune_completed_chapters(session: AsyncSession, scope: CascadeScope) -> None:
    await queries.prune_completed_chapters(session, scope.chapter_ids)


async def _unset_current_event(session: AsyncSession, scope: CascadeScope) -> None:
    await queries.null_current_event_refs(session, scope.event_ids)


async def _prune_completed_events(session: AsyncSession, scope: CascadeScope) -> None:
    await queries.prune_completed_events(session, scope.event_ids)


PLOT_DELETE_STEPS: tuple[DeleteStep, ...] = (
    _detach_inbound_references,
    _delete_events,
    _delete_chapters,
    _delete_plot_progress,
    _delete_plot_row,
)

CHAPTER_DELETE_STEPS: tuple[DeleteStep, ...] = (
    _detach_inbound_references,
    _delete_events,
    _unset_current_chapter,
    _clear_previous_chapter_refs,
    _prune_completed_chapters,
    _delete_chapters,
)

EVENT_DELETE_STEPS: tuple[DeleteStep, ...] = (
    _detach_inbound_references,
    _unset_current_event,
    _prune_completed_events,
    _delete_events,
)


async def _run_steps(
    session: AsyncSession, steps: Iterable[DeleteStep], scope: CascadeScope
) -> None:
    for step in steps:
        await step(session, scope)
        event_logger.log_db_operation(
            f"Cascade step {step.__name__} done",
            operation=step.__name__,
            chapters=len(scope.chapter_ids),
            events=len(scope.event_ids),
        )


@log_calls
async def delete_plot(session: AsyncSession, plot_id: UUID) -> None:
    """Delete a plot with all of its chapters, events and progress rows."""
    await crud.require_plot(session, plot_id)
    async with transaction(session, "delete_plot"):
        chapter_ids = await crud.chapter_ids_for_plot(session, plot_id)
        event_ids = await crud.event_ids_for_chapters(session, chapter_ids)
        scope = CascadeScope(plot_id=plot_id, chapter_ids=chapter_ids, event_ids=event_ids)
        await _run_steps(session, PLOT_DELETE_STEPS, scope)
    event_logger.log_authoring(
        "delete_plot",
        plot_id=str(plot_id),
        chapters=len(chapter_ids),
        events=len(event_ids),
    )


@log_calls
async def delete_chapter(session: AsyncSession, chapter_id: UUID) -> None:
    """Delete a chapter and its events, repairing progress cursors.

    Progress rows positioned in the chapter lose ``currentChapterId`` only;
    their event cursor and completed events are left as they are. Chapters
    gated on the deleted one have ``requirement.previousChapter`` cleared.
    """
    await crud.require_chapter(session, chapter_id)
    async with transaction(session, "delete_chapter"):
        event_ids = await crud.event_ids_for_chapters(session, [chapter_id])
        scope = CascadeScope(chapter_ids=[chapter_id], event_ids=event_ids)
        await _run_steps(session, CHAPTER_DELETE_STEPS, scope)
    event_logger.log_authoring(
        "delete_chapter", chapter_id=str(chapter_id), events=len(event_ids)
    )


@log_calls
async def delete_event(session: AsyncSession, event_id: UUID) -> None:
    """Delete an event, nulling every reference to it.

    Progress rows sitting on the event become stalled and are re-derived on
    the player's next start.
    """
    await crud.require_event(session, event_id)
    async with transaction(session, "delete_event"):
        await _run_steps(session, EVENT_DELETE_STEPS, CascadeScope(event_ids=[event_id]))
    event_logger.log_authoring("delete_event", event_id=str(event_id))


# Export / import ---------------------------------------------------------------


async def export_plot(session: AsyncSession, plot_id: UUID) -> StorySnapshot:
    """Return the full graph of ``plot_id`` as a snapshot document."""
    plot = await crud.require_plot(session, plot_id)
    chapters = await crud.chapters_for_plot(session, plot_id)
    events = await crud.events_for_chapters(session, [ch.id for ch in chapters])
    event_logger.log_authoring(
        "export_plot", plot_id=str(plot_id), chapters=len(chapters), events=len(events)
    )
    return StorySnapshot(
        plot=Plot.model_validate(plot),
        chapters=[Chapter.model_validate(ch) for ch in chapters],
        events=[Event.model_validate(ev) for ev in events],
        exported_at=utcnow(),
    )


def _remap(old_id: Any, id_map: dict[str, UUID]) -> str | None:
    """Translate a snapshot id through ``id_map``; unresolved ids become ``None``."""
    if old_id is None:
        return None
    new_id = id_map.get(str(old_id))
    return str(new_id) if new_id is not None else None


@log_calls
async def import_plot(session: AsyncSession, snapshot: StorySnapshotInput) -> UUID:
    """Recreate a snapshot under fresh ids and return the new plot id.

    Chapters and events are inserted first; a second pass then rewrites
    every successor reference and ``requirement.previousChapter`` through
    the old-to-new id maps.
    """
    async with transaction(session, "import_plot"):
        node_count = len(snapshot.chapters) + len(snapshot.events)
        if node_count > config.story.max_import_nodes:
            raise ValueError(
                f"snapshot holds {node_count} nodes, limit is {config.story.max_import_nodes}"
            )

        source_plot = snapshot.plot
        plot = await crud.add_plot(
            session, **source_plot.model_dump(exclude={"id"})
        )

        chapter_map: dict[str, UUID] = {}
        chapters: list[tuple[ChapterSQL, dict[str, Any]]] = []
        for source in snapshot.chapters:
            chapter = ChapterSQL(
                plot_id=plot.id,
                title=source.title,
                description=source.description,
                sort_order=source.sort_order,
                is_active=source.is_active,
                requirement={},
                reward=ChapterReward.model_validate(source.reward).to_wire(),
            )
            session.add(chapter)
            await session.flush()
            chapter_map[source.id] = chapter.id
            chapters.append((chapter, source.requirement))

        event_map: dict[str, UUID] = {}
        events: list[tuple[EventSQL, Any]] = []
        for source in snapshot.events:
            if source.chapter_id not in chapter_map:
                raise LookupError(
                    f"event {source.id} belongs to chapter {source.chapter_id}, "
                    "which is not part of the snapshot"
                )
            ev = EventSQL(
                chapter_id=chapter_map[source.chapter_id],
                title=source.title,
                event_type=source.event_type,
                content={},
                trigger_condition=TriggerCondition.model_validate(
                    source.trigger_condition
                ).to_wire(),
                next_event_id=None,
                is_active=source.is_active,
                sort_order=source.sort_order,
            )
            session.add(ev)
            await session.flush()
            event_map[source.id] = ev.id
            events.append((ev, source))

        # Second pass: every target now has its new id
        for chapter, requirement in chapters:
            rewritten = dict(requirement)
            if "previousChapter" in rewritten:
                rewritten["previousChapter"] = _remap(
                    rewritten["previousChapter"], chapter_map
                )
            chapter.requirement = ChapterRequirement.model_validate(rewritten).to_wire()

        for ev, source in events:
            next_id = _remap(source.next_event_id, event_map)
            ev.next_event_id = UUID(next_id) if next_id else None
            content = dict(source.content)
            content["choices"] = [
                {**choice, "nextEventId": _remap(choice.get("nextEventId"), event_map)}
                for choice in content.get("choices") or []
            ]
            ev.content = EventContent.model_validate(content).to_wire()
        await session.flush()

    event_logger.log_authoring(
        "import_plot",
        plot_id=str(plot.id),
        chapters=len(chapter_map),
        events=len(event_map),
    )
    return plot.id


def load_snapshot_file(path: str) -> StorySnapshotInput:
    """Parse a YAML (or JSON) snapshot file.

    Accepts either the bare snapshot or the ``{"storyConfig": ...}`` import
    body.
    """
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if "storyConfig" in data:
        data = data["storyConfig"]
    return StorySnapshotInput.model_validate(data)


async def import_snapshot_file(path: str) -> UUID:
    """Import the snapshot stored at ``path`` and return the new plot id."""
    snapshot = load_snapshot_file(path)
    async with get_pg() as session:
        return await import_plot(session, snapshot)


__all__ = [
    "CHAPTER_DELETE_STEPS",
    "EVENT_DELETE_STEPS",
    "PLOT_DELETE_STEPS",
    "CascadeScope",
    "create_chapter",
    "create_event",
    "create_plot",
    "delete_chapter",
    "delete_event",
    "delete_plot",
    "export_plot",
    "import_plot",
    "import_snapshot_file",
    "load_snapshot_file",
    "update_chapter",
    "update_event",
    "update_plot",
]
