"""
Tests for the SQLAlchemy repositories.

These run against the test database configured in tests/conftest.py
(SQLite by default, PostgreSQL if TEST_DATABASE_URL is set).
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest

from db.protocols import SubmissionInput
from db.testing import freeze_time, sequential_ids

if TYPE_CHECKING:
    from db.protocols import DatabaseBackendProtocol

UTC = timezone.utc

CHALLENGE_ID = "ch-spring"
GAME_DAY = date(2025, 3, 10)
NOW = datetime(2025, 3, 10, 16, 0, tzinfo=UTC)


def _submission(
    user_id: str, game_id: str, score: int, *, mistakes: int = 0
) -> SubmissionInput:
    return SubmissionInput(
        user_id=user_id,
        game_id=game_id,
        challenge_id=CHALLENGE_ID,
        started_at=NOW - timedelta(minutes=2),
        completed_at=NOW,
        time_taken=120,
        mistakes=mistakes,
        score=score,
        submission_data={"score": score},
    )


@pytest.fixture
def game_id(catalog: "DatabaseBackendProtocol") -> str:
    catalog.games.create(CHALLENGE_ID, GAME_DAY, "wordle", {"solution": "GRACE"}, game_id="g1")
    return "g1"


class TestUsersAndChallenges:
    """Users and challenges are consumed, not managed, by the server."""

    def test_create_and_retrieve_user(self, backend: "DatabaseBackendProtocol") -> None:
        with freeze_time(NOW):
            backend.users.create("Alice", "Alice@Example.com", is_verified=True, user_id="alice")
        loaded = backend.users.get_by_id("alice")
        assert loaded is not None
        assert loaded.key_id == "alice"
        assert loaded.name == "Alice"
        assert loaded.email == "alice@example.com"
        assert loaded.is_verified is True
        assert loaded.created_at == NOW

    def test_generated_user_id(self, backend: "DatabaseBackendProtocol") -> None:
        with sequential_ids("user"):
            user = backend.users.create("Anon", "")
        assert user.key_id == "user-0001"

    def test_get_nonexistent_user_returns_none(
        self, backend: "DatabaseBackendProtocol"
    ) -> None:
        assert backend.users.get_by_id("nobody") is None

    def test_list_verified_ids(self, catalog: "DatabaseBackendProtocol") -> None:
        assert catalog.users.list_verified_ids() == ["alice", "bob"]

    def test_active_challenge_by_date(self, catalog: "DatabaseBackendProtocol") -> None:
        assert catalog.challenges.get_active(date(2025, 2, 28)) is None
        first = catalog.challenges.get_active(date(2025, 3, 1))
        last = catalog.challenges.get_active(date(2025, 3, 31))
        assert first is not None and first.key_id == CHALLENGE_ID
        assert last is not None and last.key_id == CHALLENGE_ID
        assert catalog.challenges.get_active(date(2025, 4, 1)) is None

    def test_most_recent_overlapping_challenge_wins(
        self, catalog: "DatabaseBackendProtocol"
    ) -> None:
        catalog.challenges.create(
            "Holy Week", date(2025, 3, 25), date(2025, 4, 5), challenge_id="ch-week"
        )
        active = catalog.challenges.get_active(date(2025, 3, 28))
        assert active is not None and active.key_id == "ch-week"

    def test_word_bank(self, catalog: "DatabaseBackendProtocol") -> None:
        challenge = catalog.challenges.get_by_id(CHALLENGE_ID)
        assert challenge is not None
        assert challenge.word_bank == ["GRACE", "FAITH", "PSALM", "MERCY"]
        assert challenge.start_date == date(2025, 3, 1)


class TestGames:
    def test_games_of_challenge_in_date_order(
        self, catalog: "DatabaseBackendProtocol"
    ) -> None:
        for day in (12, 10, 11):
            catalog.games.create(
                CHALLENGE_ID, date(2025, 3, day), "wordle", {}, game_id=f"g{day}"
            )
        games = catalog.games.list_for_challenge(CHALLENGE_ID)
        assert [g.key_id for g in games] == ["g10", "g11", "g12"]
        upto = catalog.games.list_for_challenge(CHALLENGE_ID, up_to=date(2025, 3, 11))
        assert [g.key_id for g in upto] == ["g10", "g11"]

    def test_game_on_date(self, catalog: "DatabaseBackendProtocol") -> None:
        catalog.games.create(
            CHALLENGE_ID, GAME_DAY, "connections", {"categories": []}, game_id="g1"
        )
        game = catalog.games.get_for_challenge_on_date(CHALLENGE_ID, GAME_DAY)
        assert game is not None
        assert game.type == "connections"
        assert game.data == {"categories": []}
        assert game.date == GAME_DAY
        assert catalog.games.get_for_challenge_on_date(
            CHALLENGE_ID, date(2025, 3, 11)
        ) is None


class TestProgress:
    def test_upsert_replaces_state(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        catalog.progress.upsert("alice", game_id, {"guesses": ["FAITH"]})
        catalog.progress.upsert("alice", game_id, {"guesses": ["FAITH", "GRACE"]})
        progress = catalog.progress.get("alice", game_id)
        assert progress is not None
        assert progress.game_state == {"guesses": ["FAITH", "GRACE"]}
        assert progress.user_id == "alice"
        assert progress.game_id == game_id

    def test_upsert_updates_timestamp(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        with freeze_time(NOW):
            catalog.progress.upsert("alice", game_id, {})
        later = NOW + timedelta(minutes=5)
        with freeze_time(later):
            catalog.progress.upsert("alice", game_id, {"x": 1})
        progress = catalog.progress.get("alice", game_id)
        assert progress is not None
        assert progress.updated_at == later

    def test_delete(self, catalog: "DatabaseBackendProtocol", game_id: str) -> None:
        catalog.progress.upsert("alice", game_id, {})
        assert catalog.progress.delete("alice", game_id) is True
        assert catalog.progress.get("alice", game_id) is None
        assert catalog.progress.delete("alice", game_id) is False

    def test_submitted_progress(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        catalog.progress.upsert("alice", game_id, {})
        catalog.progress.upsert("bob", game_id, {})
        catalog.submissions.insert_or_update(_submission("alice", game_id, 40))
        stale = catalog.progress.list_submitted()
        assert [(p.user_id, p.game_id) for p in stale] == [("alice", game_id)]
        assert catalog.progress.delete_submitted() == 1
        assert catalog.progress.get("alice", game_id) is None
        assert catalog.progress.get("bob", game_id) is not None


class TestSubmissions:
    def test_insert(self, catalog: "DatabaseBackendProtocol", game_id: str) -> None:
        stored = catalog.submissions.insert_or_update(_submission("alice", game_id, 40))
        assert stored.score == 40
        assert stored.challenge_id == CHALLENGE_ID
        assert stored.completed_at == NOW
        assert stored.submission_data == {"score": 40}

    def test_lower_score_keeps_stored_record(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        catalog.submissions.insert_or_update(_submission("alice", game_id, 40))
        stored = catalog.submissions.insert_or_update(
            _submission("alice", game_id, 30, mistakes=3)
        )
        assert stored.score == 40
        assert stored.mistakes == 0

    def test_equal_score_keeps_stored_record(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        catalog.submissions.insert_or_update(_submission("alice", game_id, 40))
        stored = catalog.submissions.insert_or_update(
            _submission("alice", game_id, 40, mistakes=2)
        )
        assert stored.mistakes == 0

    def test_higher_score_overwrites(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        first = catalog.submissions.insert_or_update(_submission("alice", game_id, 30))
        first_id = first.key_id
        stored = catalog.submissions.insert_or_update(
            _submission("alice", game_id, 50, mistakes=1)
        )
        assert stored.score == 50
        assert stored.mistakes == 1
        # Still a single record for the pair
        assert stored.key_id == first_id
        assert len(catalog.submissions.list_filtered(game_id=game_id)) == 1

    def test_update_score(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        stored = catalog.submissions.insert_or_update(_submission("alice", game_id, 30))
        catalog.submissions.update_score(stored.key_id, 45, 1, {"fixed": True})
        reloaded = catalog.submissions.get("alice", game_id)
        assert reloaded is not None
        assert (reloaded.score, reloaded.mistakes) == (45, 1)
        assert reloaded.submission_data == {"fixed": True}

    def test_filters(self, catalog: "DatabaseBackendProtocol", game_id: str) -> None:
        catalog.games.create(
            CHALLENGE_ID, date(2025, 3, 11), "wordle", {}, game_id="g2"
        )
        catalog.submissions.insert_or_update(_submission("alice", game_id, 10))
        catalog.submissions.insert_or_update(_submission("alice", "g2", 20))
        catalog.submissions.insert_or_update(_submission("bob", game_id, 30))
        assert len(catalog.submissions.list_filtered()) == 3
        assert len(catalog.submissions.list_filtered(user_id="alice")) == 2
        assert len(catalog.submissions.list_filtered(game_id="g2")) == 1
        only = catalog.submissions.list_filtered(game_id=game_id, user_id="bob")
        assert [s.score for s in only] == [30]
        assert catalog.submissions.user_ids_for_game(game_id) == {"alice", "bob"}
        assert sorted(
            s.game_id for s in catalog.submissions.list_for_user("alice", CHALLENGE_ID)
        ) == [game_id, "g2"]

    def test_sum_scores_by_user(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        catalog.games.create(
            CHALLENGE_ID, date(2025, 3, 11), "wordle", {}, game_id="g2"
        )
        catalog.submissions.insert_or_update(_submission("alice", game_id, 40))
        catalog.submissions.insert_or_update(_submission("alice", "g2", 20))
        catalog.submissions.insert_or_update(_submission("bob", game_id, 60))
        catalog.submissions.insert_or_update(_submission("carol", game_id, 50))
        rows = catalog.submissions.sum_scores_by_user(CHALLENGE_ID)
        # Equal totals: more games played first
        assert [(r.user_id, r.total_score, r.games_played) for r in rows] == [
            ("alice", 60, 2),
            ("bob", 60, 1),
            ("carol", 50, 1),
        ]
        assert rows[0].name == "Alice"
        assert catalog.submissions.sum_scores_by_user("ch-other") == []


class TestPushSubscriptions:
    def test_subscribe_and_list(self, catalog: "DatabaseBackendProtocol") -> None:
        catalog.push_subscriptions.subscribe("alice", "tok-1", "ios")
        catalog.push_subscriptions.subscribe("alice", "tok-2")
        assert sorted(catalog.push_subscriptions.list_tokens("alice")) == ["tok-1", "tok-2"]
        assert catalog.push_subscriptions.list_user_ids() == {"alice"}

    def test_token_moves_to_new_user(self, catalog: "DatabaseBackendProtocol") -> None:
        catalog.push_subscriptions.subscribe("alice", "tok-1")
        catalog.push_subscriptions.subscribe("bob", "tok-1")
        assert catalog.push_subscriptions.list_tokens("alice") == []
        assert catalog.push_subscriptions.list_tokens("bob") == ["tok-1"]

    def test_unsubscribe(self, catalog: "DatabaseBackendProtocol") -> None:
        catalog.push_subscriptions.subscribe("alice", "tok-1")
        assert catalog.push_subscriptions.unsubscribe("tok-1") is True
        assert catalog.push_subscriptions.unsubscribe("tok-1") is False
        assert catalog.push_subscriptions.list_user_ids() == set()


class TestDeletion:
    def test_delete_user_data(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        catalog.progress.upsert("alice", game_id, {})
        catalog.submissions.insert_or_update(_submission("alice", game_id, 40))
        catalog.submissions.insert_or_update(_submission("bob", game_id, 30))
        catalog.push_subscriptions.subscribe("alice", "tok-1")

        with catalog.transaction():
            catalog.submissions.delete_for_user("alice")
            catalog.progress.delete_for_user("alice")
            catalog.push_subscriptions.delete_for_user("alice")
            catalog.users.delete("alice")

        assert catalog.users.get_by_id("alice") is None
        assert catalog.progress.get("alice", game_id) is None
        assert catalog.submissions.get("alice", game_id) is None
        assert catalog.push_subscriptions.list_tokens("alice") == []
        # Other users are untouched
        assert catalog.submissions.get("bob", game_id) is not None

    def test_rolled_back_savepoint_keeps_data(
        self, catalog: "DatabaseBackendProtocol", game_id: str
    ) -> None:
        catalog.submissions.insert_or_update(_submission("alice", game_id, 40))
        with pytest.raises(RuntimeError):
            with catalog.transaction():
                catalog.submissions.delete_for_user("alice")
                raise RuntimeError("abort")
        assert catalog.submissions.get("alice", game_id) is not None
