from __future__ import annotations

import uuid

import pytest

from petstory.canon import crud
from petstory.core.errors import InvalidState, NotFound, NotStarted
from petstory.engine import consistency, traversal
from petstory.models import (
    ChapterAdvanceResult,
    EventCompletedResult,
    EventUpdate,
    NextEventResult,
    PlotCompletedResult,
    PlotUpdate,
    ProgressStatus,
)

USER = "user-1"


async def test_linear_plot_runs_to_completion(session, builder, fetch_progress):
    story = await builder.linear_story()

    started = await traversal.start_or_resume(session, USER, story.plot.id)
    assert started.current_event.id == story.e1.id
    assert started.chapter.id == story.c1.id
    assert started.progress.status == ProgressStatus.IN_PROGRESS
    assert started.progress.started_at is not None

    step = await traversal.complete_event(session, USER, story.plot.id, story.e1.id)
    assert isinstance(step, NextEventResult)
    assert step.next_event.id == story.e2.id

    step = await traversal.complete_event(session, USER, story.plot.id, story.e2.id)
    assert isinstance(step, ChapterAdvanceResult)
    assert step.chapter_id == story.c2.id
    assert step.chapter_title == "Friendship"
    assert step.next_event.id == story.e3.id

    step = await traversal.complete_event(session, USER, story.plot.id, story.e3.id)
    assert isinstance(step, PlotCompletedResult)
    assert step.status == "COMPLETED"

    progress = await fetch_progress(USER, story.plot.id)
    assert progress.status == ProgressStatus.COMPLETED
    assert progress.completed_at is not None
    assert progress.current_event_id is None
    assert set(progress.completed_chapters) == {story.c1.id, story.c2.id}
    assert sorted(progress.completed_events) == sorted([story.e1.id, story.e2.id, story.e3.id])


async def test_multi_choice_follows_chosen_branch(session, builder, fetch_progress):
    plot = await builder.plot()
    chapter = await builder.chapter(plot.id)
    left = await builder.event(chapter.id, "Left path", sort_order=1)
    right = await builder.event(chapter.id, "Right path", sort_order=2)
    fork = await builder.choice_event(chapter.id, [left.id, right.id], sort_order=0)

    await traversal.start_or_resume(session, USER, plot.id)
    step = await traversal.complete_event(session, USER, plot.id, fork.id, choice_index=1)

    assert isinstance(step, NextEventResult)
    assert step.next_event.id == right.id
    progress = await fetch_progress(USER, plot.id)
    assert progress.current_event_id == right.id
    assert [(c["eventId"], c["choiceIndex"]) for c in progress.user_choices] == [
        (str(fork.id), 1)
    ]


async def test_out_of_range_choice_falls_back_to_next_event(session, builder, fetch_progress):
    plot = await builder.plot()
    chapter = await builder.chapter(plot.id)
    fallback = await builder.event(chapter.id, "Fallback", sort_order=2)
    branch = await builder.event(chapter.id, "Branch", sort_order=1)
    fork = await builder.choice_event(
        chapter.id, [branch.id], sort_order=0, next_event_id=fallback.id
    )

    await traversal.start_or_resume(session, USER, plot.id)
    step = await traversal.complete_event(session, USER, plot.id, fork.id, choice_index=7)

    assert isinstance(step, NextEventResult)
    assert step.next_event.id == fallback.id
    progress = await fetch_progress(USER, plot.id)
    assert progress.user_choices == []


async def test_current_event_before_start_is_not_started(session, builder):
    story = await builder.linear_story()
    with pytest.raises(NotStarted):
        await traversal.get_current_event(session, USER, story.plot.id)


async def test_complete_without_progress_is_not_started(session, builder):
    story = await builder.linear_story()
    with pytest.raises(NotStarted):
        await traversal.complete_event(session, USER, story.plot.id, story.e1.id)


async def test_stale_event_id_is_rejected_without_mutation(session, builder, fetch_progress):
    story = await builder.linear_story()
    await traversal.start_or_resume(session, USER, story.plot.id)
    before = await fetch_progress(USER, story.plot.id)
    snapshot = (
        before.current_event_id,
        list(before.completed_events),
        list(before.user_choices),
        before.updated_at,
    )

    with pytest.raises(InvalidState):
        await traversal.complete_event(session, USER, story.plot.id, story.e2.id)

    after = await fetch_progress(USER, story.plot.id)
    assert (
        after.current_event_id,
        list(after.completed_events),
        list(after.user_choices),
        after.updated_at,
    ) == snapshot


async def test_get_current_event_reports_chapter(session, builder):
    story = await builder.linear_story()
    await traversal.start_or_resume(session, USER, story.plot.id)

    view = await traversal.get_current_event(session, USER, story.plot.id)

    assert view.plot_id == story.plot.id
    assert view.chapter_id == story.c1.id
    assert view.chapter_title == "Meeting"
    assert view.current_event.id == story.e1.id
    assert view.current_event.type == view.current_event.event_type


async def test_dead_end_with_remaining_events_stalls_then_resumes(
    session, builder, fetch_progress
):
    plot = await builder.plot()
    chapter = await builder.chapter(plot.id)
    first = await builder.event(chapter.id, "Dead end", sort_order=0)
    await builder.event(chapter.id, "Unreached", sort_order=1)

    await traversal.start_or_resume(session, USER, plot.id)
    step = await traversal.complete_event(session, USER, plot.id, first.id)

    assert isinstance(step, EventCompletedResult)
    assert step.remaining_events_count == 1
    progress = await fetch_progress(USER, plot.id)
    assert progress.current_event_id is None
    assert progress.status == ProgressStatus.IN_PROGRESS

    view = await traversal.get_current_event(session, USER, plot.id)
    assert view.current_event.id == first.id
    resumed = await traversal.start_or_resume(session, USER, plot.id)
    assert resumed.current_event.id == first.id


async def test_completed_plot_is_returned_until_restart(session, builder, fetch_progress):
    plot = await builder.plot()
    chapter = await builder.chapter(plot.id)
    second = await builder.event(chapter.id, "End", sort_order=1)
    fork = await builder.choice_event(chapter.id, [second.id], sort_order=0)

    await traversal.start_or_resume(session, USER, plot.id)
    await traversal.complete_event(session, USER, plot.id, fork.id, choice_index=0)
    done = await traversal.complete_event(session, USER, plot.id, second.id)
    assert isinstance(done, PlotCompletedResult)

    again = await traversal.start_or_resume(session, USER, plot.id)
    assert again.is_completed is True
    assert again.current_event is None
    with pytest.raises(NotStarted):
        await traversal.get_current_event(session, USER, plot.id)

    restarted = await traversal.start_or_resume(session, USER, plot.id, restart=True)
    assert restarted.is_completed is False
    assert restarted.current_event.id == fork.id

    progress = await fetch_progress(USER, plot.id)
    assert progress.status == ProgressStatus.IN_PROGRESS
    assert progress.completed_at is None
    assert progress.completed_events == []
    assert progress.completed_chapters == []
    assert len(progress.user_choices) == 1


async def test_completion_membership_is_idempotent(session, builder, fetch_progress):
    plot = await builder.plot()
    chapter = await builder.chapter(plot.id)
    loop = await builder.event(chapter.id, "Loop", sort_order=0)
    await consistency.update_event(
        session, loop.id, EventUpdate(next_event_id=loop.id)
    )

    await traversal.start_or_resume(session, USER, plot.id)
    for _ in range(3):
        step = await traversal.complete_event(session, USER, plot.id, loop.id)
        assert isinstance(step, NextEventResult)

    progress = await fetch_progress(USER, plot.id)
    assert progress.completed_events == [loop.id]


async def test_next_chapter_skips_chapters_without_active_events(session, builder):
    plot = await builder.plot()
    c1 = await builder.chapter(plot.id, "One", sort_order=0)
    await builder.chapter(plot.id, "Empty", sort_order=1)
    c3 = await builder.chapter(plot.id, "Three", sort_order=2)
    only = await builder.event(c1.id, "Only", sort_order=0)
    target = await builder.event(c3.id, "Target", sort_order=0)

    await traversal.start_or_resume(session, USER, plot.id)
    step = await traversal.complete_event(session, USER, plot.id, only.id)

    assert isinstance(step, ChapterAdvanceResult)
    assert step.chapter_id == c3.id
    assert step.next_event.id == target.id


async def test_inactive_plot_cannot_be_started(session, builder):
    story = await builder.linear_story()
    await consistency.update_plot(session, story.plot.id, PlotUpdate(is_active=False))

    with pytest.raises(NotFound):
        await traversal.start_or_resume(session, USER, story.plot.id)
    with pytest.raises(NotFound):
        await traversal.start_or_resume(session, USER, uuid.uuid4())


async def test_plot_without_events_cannot_be_started(session, builder):
    plot = await builder.plot()
    await builder.chapter(plot.id)
    with pytest.raises(NotFound):
        await traversal.start_or_resume(session, USER, plot.id)


async def test_chapter_listing_creates_progress_and_gates_availability(
    session, builder, fetch_progress
):
    story = await builder.linear_story()

    view = await traversal.list_chapters(session, USER, story.plot.id)

    assert view.progress.status == ProgressStatus.NOT_STARTED
    assert [c.id for c in view.chapters] == [story.c1.id, story.c2.id]
    assert [c.is_available for c in view.chapters] == [True, False]
    assert (await fetch_progress(USER, story.plot.id)) is not None

    await traversal.start_or_resume(session, USER, story.plot.id)
    await traversal.complete_event(session, USER, story.plot.id, story.e1.id)
    await traversal.complete_event(session, USER, story.plot.id, story.e2.id)

    view = await traversal.list_chapters(session, USER, story.plot.id)
    assert [c.status for c in view.chapters] == [
        ProgressStatus.COMPLETED,
        ProgressStatus.IN_PROGRESS,
    ]
    assert [c.is_available for c in view.chapters] == [True, True]


async def test_plot_listing_merges_progress(session, builder):
    main = await builder.plot("Main", is_main_story=True, sort_order=5)
    side = await builder.plot("Side", sort_order=0)
    await builder.plot("Hidden", is_active=False)
    chapter = await builder.chapter(side.id)
    await builder.event(chapter.id)

    await traversal.start_or_resume(session, USER, side.id)
    plots = await traversal.list_plots(session, USER)

    assert [p.id for p in plots] == [main.id, side.id]
    assert plots[0].status == ProgressStatus.NOT_STARTED
    assert plots[0].progress is None
    assert plots[1].status == ProgressStatus.IN_PROGRESS
    assert plots[1].progress.completed_events == 0


async def test_complete_on_browsed_but_unstarted_plot_is_not_started(session, builder):
    story = await builder.linear_story()
    await traversal.list_chapters(session, USER, story.plot.id)

    with pytest.raises(NotStarted):
        await traversal.complete_event(session, USER, story.plot.id, story.e1.id)


async def test_start_recovers_when_another_request_created_progress(
    session, builder, fetch_progress, monkeypatch
):
    story = await builder.linear_story()
    await traversal.list_chapters(session, USER, story.plot.id)
    real_get_progress = crud.get_progress
    calls = []

    async def miss_first_lookup(session_, user_id, plot_id):
        # Simulates a row inserted by a concurrent request after our read
        calls.append(user_id)
        if len(calls) == 1:
            return None
        return await real_get_progress(session_, user_id, plot_id)

    monkeypatch.setattr(crud, "get_progress", miss_first_lookup)

    started = await traversal.start_or_resume(session, USER, story.plot.id)

    assert len(calls) == 2
    assert started.current_event.id == story.e1.id
    assert started.progress.status == ProgressStatus.IN_PROGRESS
    monkeypatch.undo()
    assert (await fetch_progress(USER, story.plot.id)).status == ProgressStatus.IN_PROGRESS
