"""Tests for the FastAPI play session endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from silentconvent.api import PlaySession, create_app
from silentconvent.game import build_game
from silentconvent.persistence import InMemorySaveStore, SaveRecord
from silentconvent.scheduler import ManualClock, TaskScheduler
from silentconvent.settings import EngineSettings, TransitionTimings
from silentconvent.story import REJECTION_NOTICE, STORY_REVIEW_TEXT


@pytest.fixture
def play_session() -> PlaySession:
    game = build_game(
        EngineSettings(timings=TransitionTimings(input_cooldown_ms=0)),
        scheduler=TaskScheduler(ManualClock()),
        store=InMemorySaveStore(),
    )
    return PlaySession(game, skip_delays=True)


@pytest.fixture
def client(play_session: PlaySession) -> TestClient:
    return TestClient(create_app(EngineSettings(), play_session=play_session))


def _start(client: TestClient) -> dict:
    response = client.post("/api/session")
    assert response.status_code == 200
    return response.json()


def test_session_is_idle_before_a_game_starts(client: TestClient) -> None:
    response = client.get("/api/session")

    assert response.status_code == 200
    body = response.json()
    assert body["started"] is False
    assert body["scene"] is None
    assert body["phase"] == "idle"
    assert body["accepted"] is None


def test_start_shows_the_first_line_and_pending_choice(client: TestClient) -> None:
    body = _start(client)

    assert body["started"] is True
    assert body["scene"] == "day-one"
    assert body["day"] == 1
    assert body["cursor"] == 0
    assert body["frame"]["line"] == "Morning light spills across the monastery garden."
    assert body["frame"]["background"] == "assets/images/bg_garden_day_calm.PNG"
    assert body["pending_branch"]["prompt"] == "What should she ask?"
    assert len(body["pending_branch"]["options"]) == 3


def test_advance_with_choice_injects_the_chosen_line(client: TestClient) -> None:
    _start(client)

    body = client.post("/api/session/advance", json={"choice": 2}).json()
    assert body["accepted"] is True
    assert body["cursor"] == 1
    assert body["line_count"] == 7
    assert body["pending_branch"] is None

    body = client.post("/api/session/advance").json()
    assert body["line"] == (
        "She asks about faith; the sister hums a hymn and looks at the sky."
    )


def test_advance_rejects_bad_requests(client: TestClient) -> None:
    assert client.post("/api/session/advance").status_code == 409

    _start(client)
    assert client.post("/api/session/advance", json={"choice": 3}).status_code == 422
    assert client.post("/api/session/advance", json={"choice": -1}).status_code == 422

    client.post("/api/session/advance", json={"choice": 0})
    response = client.post("/api/session/advance", json={"choice": 0})
    assert response.status_code == 409
    assert response.json()["detail"] == "No choice is pending."


def test_day_transition_runs_to_completion(client: TestClient) -> None:
    _start(client)
    body = {}
    for _ in range(20):
        body = client.post("/api/session/advance").json()
        if body["scene"] == "day-two":
            break

    assert body["scene"] == "day-two"
    assert body["phase"] == "playing"
    assert body["frame"]["caption"] is None
    assert body["frame"]["opaque"] is False


def test_save_list_load_and_delete(client: TestClient) -> None:
    _start(client)
    client.post("/api/session/advance")
    client.post("/api/session/advance")

    created = client.post("/api/saves", json={"name": "garden", "note": "calm"})
    assert created.status_code == 201
    assert created.json() == {"name": "garden"}
    assert client.post("/api/saves", json={"name": "garden"}).json() == {
        "name": "garden(1)"
    }
    assert client.get("/api/saves").json() == {"saves": ["garden", "garden(1)"]}

    client.post("/api/session/advance")
    loaded = client.post("/api/saves/garden/load")
    assert loaded.status_code == 200
    assert loaded.json()["scene"] == "day-one"
    assert loaded.json()["cursor"] == 2

    assert client.delete("/api/saves/garden").status_code == 204
    assert client.delete("/api/saves/garden").status_code == 404
    assert client.get("/api/saves").json() == {"saves": ["garden(1)"]}


def test_save_errors(client: TestClient) -> None:
    assert client.post("/api/saves", json={"name": "early"}).status_code == 409

    _start(client)
    assert client.post("/api/saves", json={"name": ""}).status_code == 422
    assert client.post("/api/saves", json={"name": ".hidden"}).status_code == 400


def test_load_failures_map_to_status_codes(
    client: TestClient, play_session: PlaySession
) -> None:
    _start(client)
    play_session.game.saves.store.write(
        "broken", SaveRecord(scene="nowhere", cursor=0, day=1)
    )

    assert client.post("/api/saves/missing/load").status_code == 404
    assert client.post("/api/saves/broken/load").status_code == 422
    assert client.get("/api/session").json()["scene"] == "day-one"


def test_locked_memory_answers_423_with_glitch(
    client: TestClient, play_session: PlaySession
) -> None:
    _start(client)
    client.post("/api/saves", json={"name": "before"})
    play_session.game.session.memory_lock.trigger()

    response = client.post("/api/saves/before/load")

    assert response.status_code == 423
    state = client.get("/api/session").json()
    assert state["memory_locked"] is True
    assert state["frame"]["notice"] == REJECTION_NOTICE


def test_story_review_requires_the_ending(
    client: TestClient, play_session: PlaySession
) -> None:
    assert client.get("/api/story").status_code == 403

    play_session.game.session.story_unlocked.trigger()
    response = client.get("/api/story")

    assert response.status_code == 200
    assert response.json() == {"text": STORY_REVIEW_TEXT}


def test_app_exposes_its_session(play_session: PlaySession) -> None:
    app = create_app(EngineSettings(), play_session=play_session)
    assert app.state.play_session is play_session
