"""
SQLAlchemy backend.

PostgreSQLBackend implements DatabaseBackendProtocol on top of one ORM
session, shared by all of its repositories. Backends are created by the
SessionManager, one per unit of work.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from sqlalchemy.orm import Session

from .repositories import (
    UserRepository,
    ChallengeRepository,
    GameRepository,
    ProgressRepository,
    SubmissionRepository,
    PushSubscriptionRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import sessionmaker


class SavepointContext:
    """An all-or-nothing section within the backend's transaction.

    On exception only the work done inside the block is rolled back,
    and the exception propagates; the enclosing unit of work goes on.

    Usage:
        with db.transaction():
            db.submissions.delete_for_user(user_id)
            db.users.delete(user_id)
    """

    def __init__(self, session: Session) -> None:
        self._session = session
        self._savepoint: Any = None

    def __enter__(self) -> "SavepointContext":
        self._savepoint = self._session.begin_nested()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        if exc_type is None:
            self._savepoint.commit()
        else:
            self._savepoint.rollback()
        return False


class PostgreSQLBackend:
    """PostgreSQL (and SQLite) implementation of DatabaseBackendProtocol"""

    def __init__(self, session_factory: "sessionmaker[Session]") -> None:
        self._session: Session = session_factory()
        session = self._session
        self._users = UserRepository(session)
        self._challenges = ChallengeRepository(session)
        self._games = GameRepository(session)
        self._progress = ProgressRepository(session)
        self._submissions = SubmissionRepository(session)
        self._push_subscriptions = PushSubscriptionRepository(session)

    @property
    def users(self) -> UserRepository:
        return self._users

    @property
    def challenges(self) -> ChallengeRepository:
        return self._challenges

    @property
    def games(self) -> GameRepository:
        return self._games

    @property
    def progress(self) -> ProgressRepository:
        return self._progress

    @property
    def submissions(self) -> SubmissionRepository:
        return self._submissions

    @property
    def push_subscriptions(self) -> PushSubscriptionRepository:
        return self._push_subscriptions

    def transaction(self) -> SavepointContext:
        """Begin a savepoint; see SavepointContext"""
        return SavepointContext(self._session)

    def commit(self) -> None:
        self._session.commit()

    def rollback(self) -> None:
        self._session.rollback()

    def close(self) -> None:
        self._session.close()
