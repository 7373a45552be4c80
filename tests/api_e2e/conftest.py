"""
Pytest configuration and fixtures for API end-to-end tests.

This module provides a Flask app wired to the test database and a fake
push notifier, a test client, and a helper for calling the API as a
particular user.

Usage:
    # Run all API e2e tests
    pytest tests/api_e2e/ -v

    # Run specific test file
    pytest tests/api_e2e/test_submissions.py -v
"""

from __future__ import annotations

from datetime import date
from typing import (
    Any,
    Dict,
    Optional,
    TYPE_CHECKING,
)

import pytest
from flask import Flask
from flask.testing import FlaskClient
from werkzeug.test import TestResponse

if TYPE_CHECKING:
    from db import SessionManager

CHALLENGE_ID = "ch-spring"
GAME_DAY = date(2025, 3, 10)

# =============================================================================
# App Fixtures
# =============================================================================


@pytest.fixture
def app(session_manager: "SessionManager", notifier: Any) -> Flask:
    """Create a Flask test app around the test database and a fake notifier.

    Test code should seed and inspect the database with db_context(),
    which commits on exit, rather than through the backend fixture,
    so that requests see the data and no connection is left open.
    """
    # Imported here: main.py configures logging and creates
    # its default app on import
    from main import create_app

    flask_app = create_app(session_manager, notifier)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def seeded(db_context: Any, seed: Any) -> None:
    """Commit the standard users and challenge"""
    with db_context() as db:
        seed(db)


@pytest.fixture
def add_game(db_context: Any, seeded: None) -> Any:
    """Factory committing a game of the seeded challenge; returns its id"""

    def factory(game_type: str, data: Dict[str, Any], day: date = GAME_DAY) -> str:
        game_id = f"{game_type}-{day.isoformat()}"
        with db_context() as db:
            db.games.create(CHALLENGE_ID, day, game_type, data, game_id=game_id)
        return game_id

    return factory


# =============================================================================
# Calling the API as a user
# =============================================================================


class ApiHelper:
    """Issues API calls on behalf of a user, or of a guest if no user is set.

    Example:
        def test_daily(api):
            resp = api.as_user("alice").get("/challenge/ch-spring/daily")
            assert resp.status_code == 200
    """

    def __init__(self, client: FlaskClient) -> None:
        self.client = client
        self.user_id: Optional[str] = None

    def as_user(self, user_id: Optional[str]) -> "ApiHelper":
        self.user_id = user_id
        return self

    def _headers(self) -> Dict[str, str]:
        return {"X-User-Id": self.user_id} if self.user_id else {}

    def get(self, path: str, **kwargs: Any) -> TestResponse:
        return self.client.get(path, headers=self._headers(), **kwargs)

    def post(self, path: str, json: Any = None, **kwargs: Any) -> TestResponse:
        return self.client.post(path, json=json, headers=self._headers(), **kwargs)

    def delete(self, path: str, **kwargs: Any) -> TestResponse:
        return self.client.delete(path, headers=self._headers(), **kwargs)


@pytest.fixture
def api(client: FlaskClient) -> ApiHelper:
    return ApiHelper(client)
