from __future__ import annotations

import json

import pytest

from habittrack import create_app


@pytest.fixture()
def cli_app(tmp_path, monkeypatch: pytest.MonkeyPatch, clock):
    monkeypatch.setenv("HABITTRACK_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("HABITTRACK_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    app = create_app("testing")
    app.extensions["habittrack"]["service"].clock = clock
    yield app
    app.extensions["habittrack"]["engine"].dispose()


def test_recompute_repairs_reset_streaks(cli_app, clock):
    service = cli_app.extensions["habittrack"]["service"]
    habit = service.create_habit("user-1", {"name": "Read"})
    service.complete("user-1", habit.id)
    clock.advance(days=1)
    service.complete("user-1", habit.id)
    service.reset_streak("user-1", habit.id)

    result = cli_app.test_cli_runner().invoke(args=["habittrack-recompute", "--user", "user-1"])

    assert result.exit_code == 0, result.output
    assert "1 habit(s) updated" in result.output
    assert service.get_habit("user-1", habit.id).streak == 2


def test_analytics_prints_json(cli_app):
    service = cli_app.extensions["habittrack"]["service"]
    habit = service.create_habit("user-1", {"name": "Read"})
    service.complete("user-1", habit.id)

    result = cli_app.test_cli_runner().invoke(args=["habittrack-analytics", "user-1"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["completed"] == 1
    assert data["date"] == "2024-03-06"

    weekly = cli_app.test_cli_runner().invoke(args=["habittrack-analytics", "user-1", "--weekly"])
    rows = json.loads(weekly.output)
    assert rows[0]["habit_name"] == "Read"
