from __future__ import annotations

import uuid

import pytest

PLAYER = {"X-User-Id": "player-7"}


async def _author_story(client, admin_headers) -> dict[str, str]:
    """Build plot -> chapter -> two linked events over the admin API."""
    plot = await client.post(
        "/api/admin/story/plots",
        json={"title": "Park", "description": "A walk", "isMainStory": True},
        headers=admin_headers,
    )
    assert plot.status_code == 201
    plot_id = plot.json()["id"]

    chapter = await client.post(
        "/api/admin/story/chapters",
        json={"plotId": plot_id, "title": "Gate", "description": "Entrance"},
        headers=admin_headers,
    )
    assert chapter.status_code == 201
    chapter_id = chapter.json()["id"]

    second = await client.post(
        "/api/admin/story/events",
        json={
            "chapterId": chapter_id,
            "title": "Find a stick",
            "eventType": "TASK",
            "sortOrder": 1,
            "content": {"taskObjective": "Bring the stick back"},
        },
        headers=admin_headers,
    )
    first = await client.post(
        "/api/admin/story/events",
        json={
            "chapterId": chapter_id,
            "title": "Bark",
            "sortOrder": 0,
            "nextEventId": second.json()["id"],
            "content": {"dialogues": [{"speaker": "Rex", "content": "Woof"}]},
        },
        headers=admin_headers,
    )
    assert first.status_code == 201
    return {
        "plot": plot_id,
        "chapter": chapter_id,
        "first": first.json()["id"],
        "second": second.json()["id"],
    }


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_ready_is_unavailable_before_bootstrap(client):
    response = await client.get("/ready")
    assert response.status_code == 503
    assert response.json()["ready"] is False


async def test_player_walkthrough(client, admin_headers):
    ids = await _author_story(client, admin_headers)

    listing = await client.get("/api/story/plots", headers=PLAYER)
    assert [p["id"] for p in listing.json()] == [ids["plot"]]
    assert listing.json()[0]["status"] == "NOT_STARTED"

    started = await client.get(f"/api/story/plots/{ids['plot']}/start", headers=PLAYER)
    assert started.status_code == 200
    body = started.json()
    assert body["isCompleted"] is False
    assert body["chapter"]["id"] == ids["chapter"]
    assert body["currentEvent"]["id"] == ids["first"]
    assert body["currentEvent"]["type"] == "DIALOG"

    step = await client.post(
        "/api/story/complete-event",
        json={"plotId": ids["plot"], "eventId": ids["first"]},
        headers=PLAYER,
    )
    assert step.status_code == 200
    next_event = step.json()["nextEvent"]
    assert next_event["id"] == ids["second"]
    assert next_event["task"] == {"description": "Bring the stick back"}

    current = await client.get(
        f"/api/story/plots/{ids['plot']}/current-event", headers=PLAYER
    )
    assert current.json()["currentEvent"]["id"] == ids["second"]

    done = await client.post(
        "/api/story/complete-event",
        json={"plotId": ids["plot"], "eventId": ids["second"]},
        headers=PLAYER,
    )
    assert done.json()["status"] == "COMPLETED"

    chapters = await client.get(f"/api/story/plots/{ids['plot']}/chapters", headers=PLAYER)
    assert chapters.json()["progress"]["status"] == "COMPLETED"
    assert chapters.json()["chapters"][0]["status"] == "COMPLETED"


async def test_error_envelopes(client, admin_headers):
    ids = await _author_story(client, admin_headers)

    not_started = await client.get(
        f"/api/story/plots/{ids['plot']}/current-event", headers=PLAYER
    )
    assert not_started.status_code == 404
    assert not_started.json()["code"] == "NOT_STARTED"

    await client.get(f"/api/story/plots/{ids['plot']}/start", headers=PLAYER)
    stale = await client.post(
        "/api/story/complete-event",
        json={"plotId": ids["plot"], "eventId": ids["second"]},
        headers=PLAYER,
    )
    assert stale.status_code == 409
    assert stale.json()["code"] == "INVALID_STATE"

    dangling = await client.put(
        f"/api/admin/story/events/{ids['first']}",
        json={"nextEventId": str(uuid.uuid4())},
        headers=admin_headers,
    )
    assert dangling.status_code == 400
    assert dangling.json()["code"] == "INVALID_REFERENCE"
    assert dangling.json()["detail"]["field"] == "nextEventId"

    missing = await client.get(
        f"/api/admin/story/plots/{uuid.uuid4()}", headers=admin_headers
    )
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


@pytest.mark.parametrize(
    ("path", "headers", "expected"),
    [
        ("/api/story/plots", {}, 401),
        ("/api/admin/story/plots", {}, 403),
        ("/api/admin/story/plots", {"X-Admin-Token": "wrong"}, 403),
    ],
)
async def test_callers_must_identify(client, path, headers, expected):
    response = await client.get(path, headers=headers)
    assert response.status_code == expected


async def test_invalid_body_is_rejected(client, admin_headers):
    response = await client.post(
        "/api/admin/story/plots", json={"title": ""}, headers=admin_headers
    )
    assert response.status_code == 422


async def test_admin_detail_update_and_delete(client, admin_headers):
    ids = await _author_story(client, admin_headers)

    detail = await client.get(f"/api/admin/story/plots/{ids['plot']}", headers=admin_headers)
    assert [c["id"] for c in detail.json()["chapters"]] == [ids["chapter"]]

    chapter = await client.get(
        f"/api/admin/story/chapters/{ids['chapter']}", headers=admin_headers
    )
    assert [e["id"] for e in chapter.json()["events"]] == [ids["first"], ids["second"]]

    renamed = await client.put(
        f"/api/admin/story/chapters/{ids['chapter']}",
        json={"title": "Front gate"},
        headers=admin_headers,
    )
    assert renamed.json()["title"] == "Front gate"
    assert renamed.json()["description"] == "Entrance"

    deleted = await client.delete(
        f"/api/admin/story/events/{ids['second']}", headers=admin_headers
    )
    assert deleted.json() == {"deleted": ids["second"]}
    first = await client.get(f"/api/admin/story/events/{ids['first']}", headers=admin_headers)
    assert first.json()["nextEventId"] is None

    await client.delete(f"/api/admin/story/plots/{ids['plot']}", headers=admin_headers)
    gone = await client.get(
        f"/api/admin/story/chapters/{ids['chapter']}", headers=admin_headers
    )
    assert gone.status_code == 404


async def test_export_import_and_stats(client, admin_headers):
    ids = await _author_story(client, admin_headers)
    await client.get(f"/api/story/plots/{ids['plot']}/start", headers=PLAYER)

    exported = await client.get(f"/api/admin/story/export/{ids['plot']}", headers=admin_headers)
    assert exported.status_code == 200
    assert len(exported.json()["events"]) == 2

    imported = await client.post(
        "/api/admin/story/import",
        json={"storyConfig": exported.json()},
        headers=admin_headers,
    )
    assert imported.status_code == 201
    new_plot = imported.json()["plotId"]
    assert new_plot != ids["plot"]

    stats = await client.get("/api/admin/story/progress-stats", headers=admin_headers)
    by_plot = {item["plotId"]: item for item in stats.json()}
    assert by_plot[ids["plot"]]["inProgressUsers"] == 1
    assert by_plot[new_plot]["totalUsers"] == 0
    assert by_plot[new_plot]["completionRate"] == 0


async def test_event_log_is_filterable(client, admin_headers):
    ids = await _author_story(client, admin_headers)
    await client.get(f"/api/story/plots/{ids['plot']}/start", headers=PLAYER)

    response = await client.get(
        "/api/admin/story/logs",
        params={"eventType": "user_action", "userId": PLAYER["X-User-Id"]},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["metrics"]["total_events"] >= len(body["events"]) >= 1
    assert {e["event_type"] for e in body["events"]} == {"user_action"}
    assert {e["user_id"] for e in body["events"]} == {PLAYER["X-User-Id"]}

    rejected = await client.get(
        "/api/admin/story/logs", params={"eventType": "nonsense"}, headers=admin_headers
    )
    assert rejected.status_code == 422
