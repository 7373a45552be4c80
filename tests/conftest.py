"""
Pytest configuration and shared fixtures.

The suites run against a throw-away SQLite database so that no PostgreSQL
server is needed. Set TEST_DATABASE_URL to run them against PostgreSQL
instead. Tables are dropped and recreated before each test.

Usage:
    # Run all tests
    pytest tests/ -v

    # Run only the repository tests
    pytest tests/db/ -v
"""

from __future__ import annotations

# IMPORTANT: Set environment variables BEFORE any app imports happen.
# config.py reads them at import time, and main.py creates its
# session manager on import.
import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="dailychallenge-test-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
)
# Run as a local development server: no Google Cloud logging
os.environ["SERVER_SOFTWARE"] = "Development/test"
os.environ["PUSH_ENABLED"] = "false"
os.environ["CHALLENGE_TIMEZONE"] = "America/New_York"

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    TYPE_CHECKING,
)

import pytest

from db import SessionManager

if TYPE_CHECKING:
    from db.protocols import DatabaseBackendProtocol, GameEntityProtocol

# UTC timezone constant
UTC = timezone.utc

# The challenge used throughout the suites runs through March 2025.
# Daylight saving time starts in New York on March 9, so noon there
# is 16:00 UTC on the game day.
CHALLENGE_ID = "ch-spring"
GAME_DAY = date(2025, 3, 10)
GAME_DAY_NOON = datetime(2025, 3, 10, 16, 0, tzinfo=UTC)
WORD_BANK = ["GRACE", "FAITH", "PSALM", "MERCY"]


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "api_e2e: end-to-end API test",
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def session_manager() -> Iterator[SessionManager]:
    """Session-scoped manager owning the test database engine."""
    manager = SessionManager()
    yield manager
    manager.close()


@pytest.fixture(autouse=True)
def _reset_tables(session_manager: SessionManager) -> Iterator[None]:
    """Start every test with empty tables."""
    session_manager.drop_tables()
    session_manager.create_tables()
    yield


@pytest.fixture
def backend(session_manager: SessionManager) -> Iterator["DatabaseBackendProtocol"]:
    """A database backend with its own session, rolled back after the test.

    Example:
        def test_create_user(backend):
            user = backend.users.create("Alice", "alice@example.com")
            assert backend.users.get_by_id(user.key_id) is not None
    """
    db = session_manager.create_backend()
    yield db
    db.rollback()
    db.close()


@pytest.fixture
def db_context(
    session_manager: SessionManager,
) -> Callable[[], ContextManager["DatabaseBackendProtocol"]]:
    """Open a committed unit of work, as a request or batch job does.

    Use this around the Flask test client: each block commits on exit
    and releases its connection, so requests see what it wrote.

    Example:
        with db_context() as db:
            db.users.create("Alice", "alice@example.com", user_id="alice")
        client.get("/challenge")
    """
    return session_manager.request_context


# =============================================================================
# Catalog Helpers
# =============================================================================


def seed_catalog(db: "DatabaseBackendProtocol") -> None:
    """Three users (two of them verified) and a challenge for March 2025."""
    db.users.create("Alice", "alice@example.com", is_verified=True, user_id="alice")
    db.users.create("Bob", "bob@example.com", is_verified=True, user_id="bob")
    db.users.create("Carol", "carol@example.com", is_verified=False, user_id="carol")
    db.challenges.create(
        "Spring Challenge",
        date(2025, 3, 1),
        date(2025, 3, 31),
        word_bank=WORD_BANK,
        challenge_id=CHALLENGE_ID,
    )


@pytest.fixture
def seed() -> Callable[["DatabaseBackendProtocol"], None]:
    return seed_catalog


@pytest.fixture
def catalog(backend: "DatabaseBackendProtocol") -> "DatabaseBackendProtocol":
    """The backend, seeded with users and the challenge."""
    seed_catalog(backend)
    return backend


GameFactory = Callable[..., "GameEntityProtocol"]


@pytest.fixture
def make_game(catalog: "DatabaseBackendProtocol") -> GameFactory:
    """Factory for games of the seeded challenge."""

    def factory(
        game_type: str,
        data: Mapping[str, Any],
        *,
        day: date = GAME_DAY,
        game_id: Optional[str] = None,
    ) -> "GameEntityProtocol":
        return catalog.games.create(
            CHALLENGE_ID,
            day,
            game_type,
            dict(data),
            game_id=game_id or f"{game_type}-{day.isoformat()}",
        )

    return factory


def connections_data(count: int = 6) -> Dict[str, Any]:
    """Connections game data with the given number of categories,
    named A, B, C, ... with four words each"""
    categories = [
        {
            "name": chr(ord("A") + i),
            "words": [f"{chr(ord('A') + i)}{j}" for j in range(4)],
            "difficulty": i % 4,
        }
        for i in range(count)
    ]
    return {"categories": categories, "words": []}


def crossword_puzzle() -> Dict[str, Any]:
    """A 3x3 crossword with two across answers and one down answer,
    covering seven distinct cells"""
    return {
        "rows": 3,
        "cols": 3,
        "acrossClues": [
            {"number": 1, "clue": "Lamb", "answer": "EWE", "row": 0, "col": 0,
             "direction": "across"},
            {"number": 3, "clue": "Father", "answer": "ABA", "row": 2, "col": 0,
             "direction": "across"},
        ],
        "downClues": [
            {"number": 1, "clue": "Garden", "answer": "EDA", "row": 0, "col": 0,
             "direction": "down"},
        ],
    }


@pytest.fixture
def crossword() -> Dict[str, Any]:
    return crossword_puzzle()


@pytest.fixture
def connections() -> Callable[..., Dict[str, Any]]:
    return connections_data


# =============================================================================
# Push notifications
# =============================================================================


@dataclass
class FakeNotifier:
    """Records push notifications instead of sending them."""

    sent: List[Tuple[str, str, Dict[str, str], Dict[str, str]]] = field(
        default_factory=list
    )
    fail_for: List[str] = field(default_factory=list)
    closed: bool = False

    def push_to_user(
        self,
        db: "DatabaseBackendProtocol",
        user_id: str,
        message: Mapping[str, str],
        data: Optional[Mapping[str, str]] = None,
    ) -> int:
        if user_id in self.fail_for:
            raise RuntimeError(f"Push service unavailable for {user_id}")
        tokens = db.push_subscriptions.list_tokens(user_id)
        for token in tokens:
            self.sent.append((user_id, token, dict(message), dict(data or {})))
        return len(tokens)

    def close(self) -> None:
        self.closed = True

    @property
    def recipients(self) -> List[str]:
        return sorted({user_id for user_id, _, _, _ in self.sent})


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


# =============================================================================
# Clock
# =============================================================================


@contextmanager
def days_after_game(days: int, hours: float = 0) -> Iterator[datetime]:
    """Freeze the clock at noon (New York time) the given number of
    days after the game day"""
    from db.testing import freeze_time

    now = GAME_DAY_NOON + timedelta(days=days, hours=hours)
    with freeze_time(now):
        yield now


@pytest.fixture
def clock() -> Callable[..., ContextManager[datetime]]:
    return days_after_game
