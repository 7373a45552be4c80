"""
API tests for the scheduled task routes
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

import tasks

pytestmark = pytest.mark.api_e2e

CRON: Dict[str, str] = {"X-Appengine-Cron": "true"}


class TestMaintenanceTask:
    def test_creates_game_and_assigns(
        self, client: Any, seeded: None, clock: Any, db_context: Any
    ) -> None:
        with clock(0):
            resp = client.post("/tasks/maintenance", headers=CRON)
        assert resp.status_code == 200
        report = resp.get_json()
        assert report["date"] == "2025-03-10"
        assert report["challenge_id"] == "ch-spring"
        assert report["game_id"] == "game-ch-spring-2025-03-10"
        assert report["created_game"] is True
        assert report["assigned"] == 2
        assert report["failed"] == []
        with db_context() as db:
            for user_id in ("alice", "bob"):
                progress = db.progress.get(user_id, report["game_id"])
                assert progress is not None
                assert "assignedWord" in progress.game_state

    def test_explicit_date(self, client: Any, seeded: None) -> None:
        resp = client.get("/tasks/maintenance?date=2025-03-15", headers=CRON)
        assert resp.status_code == 200
        assert resp.get_json()["game_id"] == "game-ch-spring-2025-03-15"

    def test_invalid_date(self, client: Any, seeded: None) -> None:
        resp = client.get("/tasks/maintenance?date=tomorrow", headers=CRON)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid date"}

    def test_restricted(
        self, client: Any, seeded: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(tasks, "running_local", False)
        resp = client.post("/tasks/maintenance")
        assert resp.status_code == 403
        assert resp.get_data(as_text=True) == "Restricted URL"
        # Cloud Scheduler and task queue requests are let through
        assert client.post("/tasks/maintenance", headers=CRON).status_code == 200
        queued = client.post(
            "/tasks/maintenance", headers={"X-AppEngine-QueueName": "default"}
        )
        assert queued.status_code == 200
        scheduled = client.post(
            "/tasks/maintenance", headers={"X-CloudScheduler": "true"}
        )
        assert scheduled.status_code == 200


class TestRemindersTask:
    def test_sends_to_players_who_have_not_played(
        self,
        client: Any,
        add_game: Any,
        clock: Any,
        db_context: Any,
        notifier: Any,
    ) -> None:
        game_id = add_game("connections", {"categories": [], "words": []})
        with db_context() as db:
            db.push_subscriptions.subscribe("alice", "alice-phone", "ios")
            db.push_subscriptions.subscribe("bob", "bob-phone", "android")
        with clock(0):
            client.post(
                "/submit",
                json={"userId": "bob", "gameId": game_id, "timeTaken": 60, "mistakes": 0},
                headers={"X-User-Id": "bob"},
            )
            resp = client.post("/tasks/reminders", headers=CRON)
        assert resp.status_code == 200
        report = resp.get_json()
        assert report["game_id"] == game_id
        assert report["recipients"] == 1
        assert report["devices"] == 1
        assert notifier.recipients == ["alice"]
        _, _, message, _ = notifier.sent[0]
        assert "Connections" in message["body"]

    def test_restricted(
        self, client: Any, seeded: None, notifier: Any, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(tasks, "running_local", False)
        assert client.post("/tasks/reminders").status_code == 403
        assert notifier.sent == []
