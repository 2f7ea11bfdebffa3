# src/petstory/engine/traversal.py
"""Per-user traversal of a plot's event graph.

A progress row moves NOT_STARTED -> IN_PROGRESS -> COMPLETED and only
returns to an earlier position through an explicit restart. A row whose
``current_event_id`` is null, or names an event that no longer exists, is
*stalled*; starting again (or asking for the current event) re-derives a
position from the chapter it was in, falling back to the plot's first event.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt

from petstory.canon import crud, queries
from petstory.canon.db import transaction
from petstory.core.errors import InvalidState, NotFound, NotStarted, TransactionAborted
from petstory.core.logs import get_event_logger, log_calls
from petstory.models import (
    ChapterAdvanceResult,
    ChapterBrief,
    ChapterSQL,
    ChapterStatusView,
    CompletionResult,
    CurrentEventView,
    EventCompletedResult,
    EventSQL,
    EventView,
    NextEventResult,
    PlayerPlot,
    PlotBrief,
    PlotChaptersView,
    PlotCompletedResult,
    ProgressBrief,
    ProgressStatus,
    ProgressSummary,
    StartResult,
    StoryEventType,
    UserStoryProgressSQL,
)
from petstory.models.sqlalchemy_models import utcnow

event_logger = get_event_logger()


async def _first_position(session: AsyncSession, plot_id: UUID) -> tuple[ChapterSQL, EventSQL]:
    chapter = await queries.first_active_chapter(session, plot_id)
    if chapter is None:
        raise NotFound("Chapter", plot_id, f"Plot {plot_id} has no active chapter")
    ev = await queries.first_active_event(session, chapter.id)
    if ev is None:
        raise NotFound("Event", chapter.id, f"Chapter {chapter.id} has no active event")
    return chapter, ev


async def _recover_position(
    session: AsyncSession, progress: UserStoryProgressSQL
) -> EventSQL | None:
    """Return the row's current event, re-deriving it when stalled.

    Mutates ``progress`` in place; returns ``None`` when the plot offers no
    active event at all.
    """
    if progress.current_event_id is not None:
        current = await crud.get_event(session, progress.current_event_id)
        if current is not None:
            if progress.current_chapter_id is None:
                progress.current_chapter_id = current.chapter_id
            return current

    ev = None
    if progress.current_chapter_id is not None:
        ev = await queries.first_active_event(session, progress.current_chapter_id)
    if ev is None:
        chapter = await queries.first_active_chapter(session, progress.plot_id)
        if chapter is not None:
            ev = await queries.first_active_event(session, chapter.id)
    if ev is None:
        return None
    progress.current_chapter_id = ev.chapter_id
    progress.current_event_id = ev.id
    return ev


def _progress_brief(progress: UserStoryProgressSQL) -> ProgressBrief:
    return ProgressBrief(
        status=progress.status,
        started_at=progress.started_at,
        completed_at=progress.completed_at,
    )


def _lost_insert_race(exc: BaseException) -> bool:
    """True when a concurrent request created the same progress row first."""
    return isinstance(exc, TransactionAborted) and isinstance(exc.__cause__, IntegrityError)


def _progress_retrying() -> AsyncRetrying:
    # The second attempt finds the winner's row and takes the existing-row path
    return AsyncRetrying(
        stop=stop_after_attempt(2),
        retry=retry_if_exception(_lost_insert_race),
        reraise=True,
    )


@log_calls
async def start_or_resume(
    session: AsyncSession, user_id: str, plot_id: UUID, restart: bool = False
) -> StartResult:
    """Start, resume or restart ``plot_id`` for ``user_id``."""
    async for attempt in _progress_retrying():
        with attempt:
            result = await _enter_plot(session, user_id, plot_id, restart)
    return result


async def _enter_plot(
    session: AsyncSession, user_id: str, plot_id: UUID, restart: bool
) -> StartResult:
    plot = await crud.require_plot(session, plot_id, active_only=True)
    first_chapter, first_event = await _first_position(session, plot_id)
    plot_brief = PlotBrief.model_validate(plot)

    async with transaction(session, "start_or_resume"):
        progress = await crud.get_progress(session, user_id, plot_id)
        if progress is None:
            progress = await crud.add_progress(
                session,
                user_id,
                plot_id,
                status=ProgressStatus.IN_PROGRESS,
                current_chapter_id=first_chapter.id,
                current_event_id=first_event.id,
                started_at=utcnow(),
            )
            current: EventSQL | None = first_event
            action = "start_plot"
        elif progress.status == ProgressStatus.COMPLETED and not restart:
            event_logger.log_user_action(
                "revisit_completed_plot", user_id=user_id, plot_id=str(plot_id)
            )
            return StartResult(
                plot=plot_brief, progress=_progress_brief(progress), is_completed=True
            )
        elif restart:
            progress.current_chapter_id = first_chapter.id
            progress.current_event_id = first_event.id
            progress.status = ProgressStatus.IN_PROGRESS
            progress.started_at = utcnow()
            progress.completed_at = None
            progress.clear_completion()
            current = first_event
            action = "restart_plot"
        else:
            current = await _recover_position(session, progress)
            if progress.status == ProgressStatus.NOT_STARTED:
                progress.status = ProgressStatus.IN_PROGRESS
                progress.started_at = utcnow()
            action = "resume_plot"
        if current is None:
            raise NotFound("Event", plot_id, f"Plot {plot_id} has no active event")

    chapter = await crud.get_chapter(session, current.chapter_id)
    event_logger.log_user_action(
        action, user_id=user_id, plot_id=str(plot_id), event_id=str(current.id)
    )
    return StartResult(
        plot=plot_brief,
        chapter=ChapterBrief.model_validate(chapter) if chapter is not None else None,
        current_event=EventView.from_event(current),
        progress=_progress_brief(progress),
    )


async def get_current_event(
    session: AsyncSession, user_id: str, plot_id: UUID
) -> CurrentEventView:
    """Return the event the user is positioned on."""
    progress = await crud.get_progress(session, user_id, plot_id)
    if progress is None or progress.status == ProgressStatus.NOT_STARTED:
        raise NotStarted(f"Plot {plot_id} has not been started", plot_id=str(plot_id))
    if progress.status == ProgressStatus.COMPLETED:
        raise NotStarted(
            f"Plot {plot_id} is completed; restart it to continue", plot_id=str(plot_id)
        )

    async with transaction(session, "get_current_event"):
        current = await _recover_position(session, progress)
        if current is None:
            raise NotStarted(
                f"No recoverable position in plot {plot_id}", plot_id=str(plot_id)
            )

    chapter = (
        await crud.get_chapter(session, progress.current_chapter_id)
        if progress.current_chapter_id is not None
        else None
    )
    return CurrentEventView(
        plot_id=plot_id,
        chapter_id=progress.current_chapter_id,
        chapter_title=chapter.title if chapter is not None else "",
        current_event=EventView.from_event(current),
    )


def _valid_choice(ev: EventSQL, choice_index: int | None) -> bool:
    return (
        ev.event_type == StoryEventType.MULTI_CHOICE
        and choice_index is not None
        and 0 <= choice_index < len(ev.choices)
    )


@log_calls
async def complete_event(
    session: AsyncSession,
    user_id: str,
    plot_id: UUID,
    event_id: UUID,
    choice_index: int | None = None,
) -> CompletionResult:
    """Complete the user's current event and advance the cursor.

    The successor is the chosen branch of a MULTI_CHOICE event, otherwise the
    event's own ``next_event_id``. An out-of-range ``choice_index`` is
    ignored. With no resolvable successor the chapter is checked for
    completion and the user moves to the next open chapter, completes the
    plot, or is left stalled while events of the chapter remain.
    """
    progress = await crud.get_progress(session, user_id, plot_id)
    if progress is None or progress.status == ProgressStatus.NOT_STARTED:
        raise NotStarted(f"Plot {plot_id} has not been started", plot_id=str(plot_id))
    if progress.current_event_id != event_id:
        raise InvalidState(
            f"Event {event_id} is not the current event",
            event_id=str(event_id),
            current_event_id=(
                str(progress.current_event_id) if progress.current_event_id else None
            ),
        )
    current = await crud.require_event(session, event_id)

    result: CompletionResult
    async with transaction(session, "complete_event"):
        if _valid_choice(current, choice_index):
            assert choice_index is not None
            successor_id = current.choice_target(choice_index)
            progress.record_choice(current.id, choice_index)
        else:
            successor_id = current.next_event_id
        progress.mark_event_completed(current.id)

        successor = (
            await crud.get_event(session, successor_id) if successor_id is not None else None
        )
        if successor is not None:
            progress.current_event_id = successor.id
            next_chapter = None
            if successor.chapter_id != current.chapter_id:
                next_chapter = await crud.get_chapter(session, successor.chapter_id)
            if next_chapter is not None:
                progress.mark_chapter_completed(current.chapter_id)
                progress.current_chapter_id = next_chapter.id
                result = ChapterAdvanceResult(
                    chapter_id=next_chapter.id,
                    chapter_title=next_chapter.title,
                    next_event=EventView.from_event(successor),
                )
            else:
                result = NextEventResult(next_event=EventView.from_event(successor))
        else:
            completed = set(progress.completed_events)
            remaining = [
                eid
                for eid in await queries.active_event_ids(session, current.chapter_id)
                if eid not in completed
            ]
            if remaining:
                progress.current_event_id = None
                result = EventCompletedResult(remaining_events_count=len(remaining))
            else:
                progress.mark_chapter_completed(current.chapter_id)
                following = await queries.next_open_chapter(
                    session, plot_id, progress.completed_chapters
                )
                if following is not None:
                    chapter, first = following
                    progress.current_chapter_id = chapter.id
                    progress.current_event_id = first.id
                    result = ChapterAdvanceResult(
                        chapter_id=chapter.id,
                        chapter_title=chapter.title,
                        next_event=EventView.from_event(first),
                    )
                else:
                    completed_at = utcnow()
                    progress.status = ProgressStatus.COMPLETED
                    progress.completed_at = completed_at
                    progress.current_event_id = None
                    result = PlotCompletedResult(completed_at=completed_at)

    event_logger.log_user_action(
        "complete_event",
        user_id=user_id,
        plot_id=str(plot_id),
        event_id=str(event_id),
        choice_index=choice_index,
        outcome=type(result).__name__,
    )
    return result


async def list_plots(session: AsyncSession, user_id: str) -> list[PlayerPlot]:
    """Return active plots merged with the user's progress."""
    plots = await crud.list_plots(session, active_only=True)
    progress_by_plot = await crud.progress_for_user(session, user_id)
    views = []
    for plot in plots:
        progress = progress_by_plot.get(plot.id)
        view = PlayerPlot.model_validate(plot)
        if progress is not None:
            view.status = progress.status
            view.progress = ProgressSummary.from_progress(progress)
        views.append(view)
    return views


async def list_chapters(session: AsyncSession, user_id: str, plot_id: UUID) -> PlotChaptersView:
    """Return the plot's active chapters annotated for ``user_id``.

    Creates a NOT_STARTED progress row on first view.
    """
    async for attempt in _progress_retrying():
        with attempt:
            view = await _chapters_view(session, user_id, plot_id)
    return view


async def _chapters_view(
    session: AsyncSession, user_id: str, plot_id: UUID
) -> PlotChaptersView:
    plot = await crud.require_plot(session, plot_id, active_only=True)
    async with transaction(session, "list_chapters"):
        progress = await crud.get_progress(session, user_id, plot_id)
        if progress is None:
            progress = await crud.add_progress(session, user_id, plot_id)

    completed = set(progress.completed_chapters)
    chapters = []
    for chapter in await crud.chapters_for_plot(session, plot_id, active_only=True):
        if chapter.id in completed:
            status = ProgressStatus.COMPLETED
        elif chapter.id == progress.current_chapter_id:
            status = ProgressStatus.IN_PROGRESS
        else:
            status = ProgressStatus.NOT_STARTED
        previous = chapter.previous_chapter_id
        chapters.append(
            ChapterStatusView(
                id=chapter.id,
                title=chapter.title,
                description=chapter.description,
                sort_order=chapter.sort_order,
                status=status,
                is_available=previous is None or previous in completed,
            )
        )
    return PlotChaptersView(
        plot=PlotBrief.model_validate(plot),
        chapters=chapters,
        progress=_progress_brief(progress),
    )


__all__ = [
    "complete_event",
    "get_current_event",
    "list_chapters",
    "list_plots",
    "start_or_resume",
]
