from __future__ import annotations

import json

import pytest
from sqlalchemy import func, select

from petstory.core.errors import TransactionAborted
from petstory.engine import consistency, traversal
from petstory.models import PlotSQL, StorySnapshotInput


def _structure(snapshot) -> dict:
    """Describe a snapshot by titles only so that ids do not matter."""
    chapter_titles = {ch.id: ch.title for ch in snapshot.chapters}
    event_titles = {ev.id: ev.title for ev in snapshot.events}
    return {
        "plot": (snapshot.plot.title, snapshot.plot.sort_order, snapshot.plot.is_main_story),
        "chapters": sorted(
            (
                ch.title,
                ch.sort_order,
                chapter_titles.get(ch.requirement.previous_chapter),
            )
            for ch in snapshot.chapters
        ),
        "events": sorted(
            (
                ev.title,
                chapter_titles[ev.chapter_id],
                ev.event_type.value,
                event_titles.get(ev.next_event_id),
                tuple(event_titles.get(c.next_event_id) for c in ev.content.choices),
            )
            for ev in snapshot.events
        ),
    }


async def _plot_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(PlotSQL))).scalar_one()


async def test_export_then_import_is_isomorphic_with_fresh_ids(session, builder):
    story = await builder.linear_story()
    await builder.choice_event(story.c2.id, [story.e3.id, story.e1.id], "Crossroads", sort_order=3)

    exported = await consistency.export_plot(session, story.plot.id)
    payload = json.loads(json.dumps(exported.to_wire()))
    new_plot_id = await consistency.import_plot(
        session, StorySnapshotInput.model_validate(payload)
    )
    reimported = await consistency.export_plot(session, new_plot_id)

    assert new_plot_id != story.plot.id
    assert _structure(reimported) == _structure(exported)
    old_ids = {story.plot.id, *(c.id for c in exported.chapters), *(e.id for e in exported.events)}
    new_ids = {new_plot_id, *(c.id for c in reimported.chapters), *(e.id for e in reimported.events)}
    assert old_ids.isdisjoint(new_ids)
    assert {ev.chapter_id for ev in reimported.events} <= {ch.id for ch in reimported.chapters}


async def test_imported_plot_is_playable(session, builder):
    story = await builder.linear_story()
    exported = await consistency.export_plot(session, story.plot.id)
    new_plot_id = await consistency.import_plot(
        session, StorySnapshotInput.model_validate(exported.to_wire())
    )

    started = await traversal.start_or_resume(session, "player", new_plot_id)
    step = await traversal.complete_event(
        session, "player", new_plot_id, started.current_event.id
    )

    assert started.current_event.title == "Hello"
    assert step.next_event.title == "Sniff around"


async def test_unresolved_references_become_null(session):
    snapshot = StorySnapshotInput.model_validate(
        {
            "plot": {"_id": "p1", "title": "Legacy", "description": "from the old system"},
            "chapters": [
                {
                    "_id": "c1",
                    "title": "Only",
                    "description": "only chapter",
                    "requirement": {"userLevel": 2, "previousChapter": "gone"},
                }
            ],
            "events": [
                {
                    "_id": "e1",
                    "chapterId": "c1",
                    "title": "Start",
                    "eventType": "MULTI_CHOICE",
                    "nextEventId": "missing",
                    "content": {
                        "choices": [
                            {"text": "stay", "nextEventId": "e1"},
                            {"text": "leave", "nextEventId": "nowhere"},
                        ]
                    },
                }
            ],
        }
    )

    plot_id = await consistency.import_plot(session, snapshot)
    exported = await consistency.export_plot(session, plot_id)

    (chapter,) = exported.chapters
    (ev,) = exported.events
    assert chapter.requirement.previous_chapter is None
    assert chapter.requirement.user_level == 2
    assert ev.next_event_id is None
    assert [c.next_event_id for c in ev.content.choices] == [ev.id, None]


async def test_event_outside_snapshot_aborts_whole_import(session, builder):
    await builder.linear_story()
    before = await _plot_count(session)
    snapshot = StorySnapshotInput.model_validate(
        {
            "plot": {"id": "p1", "title": "Broken", "description": "bad chapter ref"},
            "chapters": [{"id": "c1", "title": "Fine", "description": "ok"}],
            "events": [
                {"id": "e1", "chapterId": "c1", "title": "Fine"},
                {"id": "e2", "chapterId": "elsewhere", "title": "Stray"},
            ],
        }
    )

    with pytest.raises(TransactionAborted) as excinfo:
        await consistency.import_plot(session, snapshot)

    assert isinstance(excinfo.value.__cause__, LookupError)
    assert await _plot_count(session) == before


async def test_snapshot_file_accepts_yaml_import_body(tmp_path):
    path = tmp_path / "story.yaml"
    path.write_text(
        "storyConfig:\n"
        "  plot: {id: p1, title: Park, description: A walk}\n"
        "  chapters:\n"
        "    - {id: c1, title: Gate, description: Entrance}\n"
        "  events:\n"
        "    - {id: e1, chapterId: c1, title: Bark}\n",
        encoding="utf-8",
    )

    snapshot = consistency.load_snapshot_file(str(path))

    assert snapshot.plot.title == "Park"
    assert [ev.chapter_id for ev in snapshot.events] == ["c1"]


async def test_exported_json_file_can_be_imported(engine, session, builder, tmp_path):
    story = await builder.linear_story()
    exported = await consistency.export_plot(session, story.plot.id)
    path = tmp_path / "story.json"
    path.write_text(json.dumps(exported.to_wire()), encoding="utf-8")

    new_plot_id = await consistency.import_snapshot_file(str(path))

    reimported = await consistency.export_plot(session, new_plot_id)
    assert sorted(ev.title for ev in reimported.events) == ["Hello", "Play fetch", "Sniff around"]
