from __future__ import annotations

import pytest

from habittrack import create_app

USER = {"X-User-Id": "user-1"}


@pytest.fixture()
def habit_app(tmp_path, monkeypatch: pytest.MonkeyPatch, clock):
    db_path = tmp_path / "habits.db"
    monkeypatch.setenv("HABITTRACK_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("HABITTRACK_DATABASE_URL", f"sqlite:///{db_path}")
    app = create_app("testing")
    app.extensions["habittrack"]["service"].clock = clock
    yield app
    app.extensions["habittrack"]["engine"].dispose()


@pytest.fixture()
def client(habit_app):
    with habit_app.test_client() as client:
        yield client


def _create(client, **payload) -> dict:
    body = {"name": "Exercise", **payload}
    response = client.post("/api/habits/", json=body, headers=USER)
    assert response.status_code == 201
    return response.get_json()["habit"]


def test_requests_without_user_are_rejected(client):
    response = client.get("/api/habits/")
    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthenticated"


def test_session_user_is_accepted(client):
    with client.session_transaction() as sess:
        sess["user_id"] = "user-1"
    response = client.get("/api/habits/")
    assert response.status_code == 200
    assert response.get_json()["count"] == 0


def test_create_and_fetch(client):
    habit = _create(client, category="health", minimum_duration=15)

    assert habit["streak"] == 0
    assert habit["category"] == "health"
    assert habit["meets_minimum_duration"] is False
    assert habit["completion_history"] == []

    response = client.get(f"/api/habits/{habit['id']}", headers=USER)
    assert response.status_code == 200
    assert response.get_json()["habit"]["name"] == "Exercise"


def test_validation_errors_are_400(client):
    response = client.post("/api/habits/", json={"name": ""}, headers=USER)

    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert body["error"] == "validation"
    assert "name" in body["fields"]


def test_other_users_habit_is_404(client):
    habit = _create(client)
    response = client.post(f"/api/habits/{habit['id']}/complete", json={}, headers={"X-User-Id": "user-2"})
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_complete_twice_is_409(client):
    habit = _create(client)
    first = client.post(
        f"/api/habits/{habit['id']}/complete",
        json={"duration": 120, "reflection": "felt good"},
        headers=USER,
    )
    assert first.status_code == 200
    payload = first.get_json()
    assert payload["habit"]["streak"] == 1
    assert payload["habit"]["today_status"] == "completed"
    assert payload["habit"]["badges"][0]["unlocked"] is True
    assert payload["pattern_flags"] == ["completed without timer"]

    second = client.post(f"/api/habits/{habit['id']}/complete", json={}, headers=USER)
    assert second.status_code == 409
    assert second.get_json()["error"] == "conflict"


def test_start_pause_flow(client, clock):
    run = _create(client, name="Run")
    read = _create(client, name="Read")

    assert client.post(f"/api/habits/{run['id']}/start", headers=USER).status_code == 200
    assert client.post(f"/api/habits/{read['id']}/start", headers=USER).status_code == 409

    clock.advance(minutes=2)
    paused = client.post(f"/api/habits/{run['id']}/pause", headers=USER).get_json()["habit"]
    assert paused["status"] == "idle"
    assert paused["paused_duration"] == 120


def test_skip_with_backdated_date(client):
    habit = _create(client)

    response = client.post(f"/api/habits/{habit['id']}/skip", json={"date": "2024-03-05"}, headers=USER)
    assert response.status_code == 200
    assert response.get_json()["habit"]["completion_history"][0]["status"] == "skipped"

    again = client.post(f"/api/habits/{habit['id']}/skip", headers=USER)
    assert again.status_code == 409


def test_uncomplete_and_reset(client):
    habit = _create(client)
    client.post(f"/api/habits/{habit['id']}/complete", json={}, headers=USER)

    undone = client.post(f"/api/habits/{habit['id']}/uncomplete-today", headers=USER).get_json()["habit"]
    assert undone["streak"] == 0
    assert undone["today_status"] is None

    missing = client.post(f"/api/habits/{habit['id']}/uncomplete", headers=USER)
    assert missing.status_code == 404

    client.post(f"/api/habits/{habit['id']}/complete", json={}, headers=USER)
    reset = client.post(f"/api/habits/{habit['id']}/reset-streak", headers=USER).get_json()["habit"]
    assert reset["streak"] == 0
    repaired = client.post(f"/api/habits/{habit['id']}/recompute", headers=USER).get_json()["habit"]
    assert repaired["streak"] == 1


def test_update_archive_and_delete(client):
    habit = _create(client)

    updated = client.put(f"/api/habits/{habit['id']}", json={"name": "Morning run"}, headers=USER)
    assert updated.get_json()["habit"]["name"] == "Morning run"

    client.post(f"/api/habits/{habit['id']}/archive", headers=USER)
    assert client.get("/api/habits/", headers=USER).get_json()["count"] == 0
    assert client.get("/api/habits/?include_inactive=true", headers=USER).get_json()["count"] == 1

    assert client.delete(f"/api/habits/{habit['id']}", headers=USER).status_code == 200
    assert client.get(f"/api/habits/{habit['id']}", headers=USER).status_code == 404


def test_honesty_review(client):
    habit = _create(client)
    client.post(f"/api/habits/{habit['id']}/complete", json={}, headers=USER)

    response = client.post(
        "/api/habits/honesty-review",
        json={"reviews": [{"habit_id": habit["id"], "honesty_status": "honest"}]},
        headers=USER,
    )

    assert response.status_code == 200
    assert response.get_json()["results"] == [{"habit_id": habit["id"], "success": True}]
    fetched = client.get(f"/api/habits/{habit['id']}", headers=USER).get_json()["habit"]
    assert fetched["completion_history"][0]["honesty_status"] == "honest"


def test_analytics_endpoints(client):
    done = _create(client, name="Run", category="health")
    _create(client, name="Read")
    client.post(f"/api/habits/{done['id']}/complete", json={}, headers=USER)

    daily = client.get("/api/habits/analytics/daily", headers=USER).get_json()["data"]
    assert daily["total"] == 2
    assert daily["completed"] == 1
    assert daily["completion_rate"] == 50

    weekly = client.get("/api/habits/analytics/weekly", headers=USER).get_json()["data"]
    assert len(weekly) == 2
    assert all(len(row["week_status"]) == 7 for row in weekly)
