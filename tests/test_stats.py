from __future__ import annotations

import pytest

from petstory.engine import stats, traversal


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(0, 0, 0), (1, 3, 33.33), (2, 3, 66.67), (4, 4, 100.0)],
)
def test_completion_rate(completed, total, expected):
    assert stats.completion_rate(completed, total) == expected


async def test_progress_stats_counts_users_per_status(session, builder):
    played = await builder.plot("Played", sort_order=0)
    chapter = await builder.chapter(played.id)
    last = await builder.event(chapter.id, "Last", sort_order=1)
    first = await builder.event(chapter.id, "First", sort_order=0, next_event_id=last.id)
    untouched = await builder.plot("Untouched", sort_order=1)

    await traversal.start_or_resume(session, "finisher", played.id)
    await traversal.complete_event(session, "finisher", played.id, first.id)
    await traversal.complete_event(session, "finisher", played.id, last.id)
    await traversal.start_or_resume(session, "wanderer", played.id)
    await traversal.list_chapters(session, "browser", played.id)

    by_plot = {item.plot_id: item for item in await stats.progress_stats(session)}

    item = by_plot[played.id]
    assert item.plot_title == "Played"
    assert (
        item.total_users,
        item.completed_users,
        item.in_progress_users,
        item.not_started_users,
    ) == (3, 1, 1, 1)
    assert item.completion_rate == 33.33

    empty = by_plot[untouched.id]
    assert empty.total_users == 0
    assert empty.completion_rate == 0
