"""
Repository implementations for PostgreSQL backend.

These classes implement the repository protocols using SQLAlchemy ORM.

Writes to the progress, submission and push subscription stores are
single INSERT ... ON CONFLICT statements keyed on their unique
constraints, so two concurrent writers for the same (user, game) pair
cannot create duplicate rows. The statements are built with the
dialect module matching the session's engine (PostgreSQL in production,
SQLite for local runs and tests).
"""

from __future__ import annotations

from typing import (
    Optional,
    List,
    Set,
    Any,
)
from datetime import date, timezone

from sqlalchemy import select, delete, exists, and_, func, desc, asc
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .models import (
    User,
    Challenge,
    Game,
    GameProgress,
    GameSubmission,
    PushSubscription,
)

from .entities import (
    UserEntity,
    ChallengeEntity,
    GameEntity,
    ProgressEntity,
    SubmissionEntity,
)

from ..protocols import (
    JsonDict,
    LeaderboardRow,
    SubmissionInput,
)
from ..testing import generate_id, get_current_time

UTC = timezone.utc


def _upsert(session: Session, model: Any) -> Any:
    """Return a dialect-specific INSERT construct supporting ON CONFLICT."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


def _submitted_clause() -> Any:
    """Correlated EXISTS: a submission exists for the progress row's pair."""
    return exists().where(
        and_(
            GameSubmission.user_id == GameProgress.user_id,
            GameSubmission.game_id == GameProgress.game_id,
        )
    )


class UserRepository:
    """PostgreSQL implementation of UserRepositoryProtocol."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, user_id: str) -> Optional[UserEntity]:
        """Fetch a user by their ID."""
        user = self._session.get(User, user_id)
        return UserEntity(user) if user else None

    def create(
        self,
        name: str,
        email: str,
        is_verified: bool = False,
        user_id: Optional[str] = None,
    ) -> UserEntity:
        """Create a new user."""
        user = User(
            id=user_id or generate_id(),
            name=name,
            email=email.lower() if email else "",
            is_verified=is_verified,
            created_at=get_current_time(),
        )
        self._session.add(user)
        self._session.flush()
        return UserEntity(user)

    def list_verified_ids(self) -> List[str]:
        """Return the ids of all verified users."""
        stmt = (
            select(User.id)
            .where(User.is_verified == True)  # noqa: E712
            .order_by(asc(User.id))
        )
        return list(self._session.execute(stmt).scalars())

    def delete(self, user_id: str) -> None:
        """Delete a user; dependent rows go with it (ON DELETE CASCADE)."""
        self._session.execute(delete(User).where(User.id == user_id))


class ChallengeRepository:
    """PostgreSQL implementation of ChallengeRepositoryProtocol."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, challenge_id: str) -> Optional[ChallengeEntity]:
        """Fetch a challenge by its ID."""
        challenge = self._session.get(Challenge, challenge_id)
        return ChallengeEntity(challenge) if challenge else None

    def get_active(self, on_date: date) -> Optional[ChallengeEntity]:
        """Return the challenge whose date range includes the given day.
        If ranges overlap, the most recently started challenge wins."""
        stmt = (
            select(Challenge)
            .where(
                and_(Challenge.start_date <= on_date, Challenge.end_date >= on_date)
            )
            .order_by(desc(Challenge.start_date), asc(Challenge.id))
        )
        challenge = self._session.execute(stmt).scalars().first()
        return ChallengeEntity(challenge) if challenge else None

    def create(
        self,
        name: str,
        start_date: date,
        end_date: date,
        word_bank: Optional[List[str]] = None,
        challenge_id: Optional[str] = None,
    ) -> ChallengeEntity:
        """Create a new challenge."""
        challenge = Challenge(
            id=challenge_id or generate_id(),
            name=name,
            start_date=start_date,
            end_date=end_date,
            word_bank=list(word_bank or []),
        )
        self._session.add(challenge)
        self._session.flush()
        return ChallengeEntity(challenge)


class GameRepository:
    """PostgreSQL implementation of GameRepositoryProtocol."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, game_id: str) -> Optional[GameEntity]:
        """Fetch a game by its ID."""
        game = self._session.get(Game, game_id)
        return GameEntity(game) if game else None

    def list_for_challenge(
        self, challenge_id: str, up_to: Optional[date] = None
    ) -> List[GameEntity]:
        """Games of a challenge in date order."""
        stmt = select(Game).where(Game.challenge_id == challenge_id)
        if up_to is not None:
            stmt = stmt.where(Game.date <= up_to)
        stmt = stmt.order_by(asc(Game.date), asc(Game.id))
        return [GameEntity(g) for g in self._session.execute(stmt).scalars()]

    def get_for_challenge_on_date(
        self, challenge_id: str, on_date: date
    ) -> Optional[GameEntity]:
        """The game of a challenge on a particular day, if any."""
        stmt = (
            select(Game)
            .where(and_(Game.challenge_id == challenge_id, Game.date == on_date))
            .order_by(asc(Game.id))
        )
        game = self._session.execute(stmt).scalars().first()
        return GameEntity(game) if game else None

    def create(
        self,
        challenge_id: str,
        on_date: date,
        game_type: str,
        data: JsonDict,
        game_id: Optional[str] = None,
    ) -> GameEntity:
        """Create a new game."""
        now = get_current_time()
        game = Game(
            id=game_id or generate_id(),
            challenge_id=challenge_id,
            date=on_date,
            type=game_type,
            data=data,
            created_at=now,
            updated_at=now,
        )
        self._session.add(game)
        self._session.flush()
        return GameEntity(game)


class ProgressRepository:
    """PostgreSQL implementation of ProgressRepositoryProtocol."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, user_id: str, game_id: str) -> Optional[ProgressEntity]:
        """Fetch the progress record of a user for a game."""
        stmt = (
            select(GameProgress)
            .where(
                and_(GameProgress.user_id == user_id, GameProgress.game_id == game_id)
            )
            # Rows may have been rewritten by an upsert behind the ORM's back
            .execution_options(populate_existing=True)
        )
        progress = self._session.execute(stmt).scalar_one_or_none()
        return ProgressEntity(progress) if progress else None

    def upsert(self, user_id: str, game_id: str, game_state: JsonDict) -> None:
        """Insert or replace the state blob for (user, game)."""
        stmt = _upsert(self._session, GameProgress).values(
            id=generate_id(),
            user_id=user_id,
            game_id=game_id,
            game_state=game_state,
            updated_at=get_current_time(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[GameProgress.user_id, GameProgress.game_id],
            set_={
                "game_state": stmt.excluded.game_state,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self._session.execute(stmt)

    def delete(self, user_id: str, game_id: str) -> bool:
        """Delete a progress record. Returns True if one existed."""
        result: Any = self._session.execute(
            delete(GameProgress).where(
                and_(GameProgress.user_id == user_id, GameProgress.game_id == game_id)
            )
        )
        return (result.rowcount or 0) > 0

    def delete_for_user(self, user_id: str) -> None:
        """Delete all progress records of a user."""
        self._session.execute(
            delete(GameProgress).where(GameProgress.user_id == user_id)
        )

    def list_submitted(self) -> List[ProgressEntity]:
        """Progress records whose (user, game) already has a submission."""
        stmt = (
            select(GameProgress)
            .where(_submitted_clause())
            .order_by(asc(GameProgress.user_id), asc(GameProgress.game_id))
        )
        return [ProgressEntity(p) for p in self._session.execute(stmt).scalars()]

    def delete_submitted(self) -> int:
        """Delete progress records that already have a submission."""
        result: Any = self._session.execute(
            delete(GameProgress)
            .where(_submitted_clause())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class SubmissionRepository:
    """PostgreSQL implementation of SubmissionRepositoryProtocol."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, user_id: str, game_id: str) -> Optional[SubmissionEntity]:
        """Fetch the submission of a user for a game."""
        stmt = (
            select(GameSubmission)
            .where(
                and_(
                    GameSubmission.user_id == user_id,
                    GameSubmission.game_id == game_id,
                )
            )
            .execution_options(populate_existing=True)
        )
        sub = self._session.execute(stmt).scalar_one_or_none()
        return SubmissionEntity(sub) if sub else None

    def insert_or_update(self, record: SubmissionInput) -> SubmissionEntity:
        """Insert a submission, or overwrite the stored one for the same
        (user, game) only if the new score is strictly higher. The
        comparison happens inside the statement, so concurrent submits
        cannot replace a better score with a worse one."""
        stmt = _upsert(self._session, GameSubmission).values(
            id=generate_id(),
            user_id=record.user_id,
            game_id=record.game_id,
            challenge_id=record.challenge_id,
            started_at=record.started_at,
            completed_at=record.completed_at,
            time_taken=record.time_taken,
            mistakes=record.mistakes,
            score=record.score,
            submission_data=record.submission_data,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[GameSubmission.user_id, GameSubmission.game_id],
            set_={
                "challenge_id": excluded.challenge_id,
                "started_at": excluded.started_at,
                "completed_at": excluded.completed_at,
                "time_taken": excluded.time_taken,
                "mistakes": excluded.mistakes,
                "score": excluded.score,
                "submission_data": excluded.submission_data,
            },
            where=GameSubmission.score < excluded.score,
        )
        self._session.execute(stmt)
        stored = self.get(record.user_id, record.game_id)
        assert stored is not None
        return stored

    def update_score(
        self,
        submission_id: str,
        score: int,
        mistakes: int,
        submission_data: JsonDict,
    ) -> None:
        """Rewrite the scoring fields of a stored submission."""
        sub = self._session.get(GameSubmission, submission_id)
        if sub is None:
            return
        sub.score = score
        sub.mistakes = mistakes
        # Assign a fresh dict so the JSON column is flagged as modified
        sub.submission_data = dict(submission_data)
        self._session.flush()

    def list_for_user(
        self, user_id: str, challenge_id: str
    ) -> List[SubmissionEntity]:
        """All submissions of a user within a challenge."""
        stmt = (
            select(GameSubmission)
            .where(
                and_(
                    GameSubmission.user_id == user_id,
                    GameSubmission.challenge_id == challenge_id,
                )
            )
            .order_by(asc(GameSubmission.completed_at), asc(GameSubmission.id))
            .execution_options(populate_existing=True)
        )
        return [SubmissionEntity(s) for s in self._session.execute(stmt).scalars()]

    def list_filtered(
        self, game_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> List[SubmissionEntity]:
        """Submissions, optionally restricted to a game and/or a user."""
        stmt = select(GameSubmission)
        if game_id is not None:
            stmt = stmt.where(GameSubmission.game_id == game_id)
        if user_id is not None:
            stmt = stmt.where(GameSubmission.user_id == user_id)
        stmt = stmt.order_by(
            asc(GameSubmission.game_id), asc(GameSubmission.user_id)
        ).execution_options(populate_existing=True)
        return [SubmissionEntity(s) for s in self._session.execute(stmt).scalars()]

    def user_ids_for_game(self, game_id: str) -> Set[str]:
        """Ids of the users who have submitted the given game."""
        stmt = select(GameSubmission.user_id).where(GameSubmission.game_id == game_id)
        return set(self._session.execute(stmt).scalars())

    def sum_scores_by_user(self, challenge_id: str) -> List[LeaderboardRow]:
        """Total score and game count per user within a challenge,
        highest total first."""
        total = func.sum(GameSubmission.score).label("total")
        played = func.count(GameSubmission.id).label("played")
        stmt = (
            select(User.id, User.name, total, played)
            .join(GameSubmission, GameSubmission.user_id == User.id)
            .where(GameSubmission.challenge_id == challenge_id)
            .group_by(User.id, User.name)
            .order_by(desc(total), desc(played), asc(User.id))
        )
        return [
            LeaderboardRow(
                user_id=row.id,
                name=row.name or "",
                total_score=int(row.total or 0),
                games_played=int(row.played or 0),
            )
            for row in self._session.execute(stmt)
        ]

    def delete_for_user(self, user_id: str) -> None:
        """Delete all submissions of a user."""
        self._session.execute(
            delete(GameSubmission).where(GameSubmission.user_id == user_id)
        )


class PushSubscriptionRepository:
    """PostgreSQL implementation of PushSubscriptionRepositoryProtocol."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def subscribe(self, user_id: str, token: str, platform: str = "") -> None:
        """Register a device token; an existing token moves to this user."""
        stmt = _upsert(self._session, PushSubscription).values(
            id=generate_id(),
            user_id=user_id,
            token=token,
            platform=platform or None,
            created_at=get_current_time(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[PushSubscription.token],
            set_={
                "user_id": stmt.excluded.user_id,
                "platform": stmt.excluded.platform,
            },
        )
        self._session.execute(stmt)

    def unsubscribe(self, token: str) -> bool:
        """Remove a device token. Returns True if it existed."""
        result: Any = self._session.execute(
            delete(PushSubscription).where(PushSubscription.token == token)
        )
        return (result.rowcount or 0) > 0

    def list_tokens(self, user_id: str) -> List[str]:
        """Device tokens of a user."""
        stmt = (
            select(PushSubscription.token)
            .where(PushSubscription.user_id == user_id)
            .order_by(asc(PushSubscription.created_at))
        )
        return list(self._session.execute(stmt).scalars())

    def list_user_ids(self) -> Set[str]:
        """Ids of all users having at least one device token."""
        stmt = select(PushSubscription.user_id).distinct()
        return set(self._session.execute(stmt).scalars())

    def delete_for_user(self, user_id: str) -> None:
        """Delete all device tokens of a user."""
        self._session.execute(
            delete(PushSubscription).where(PushSubscription.user_id == user_id)
        )


__all__ = [
    "UserRepository",
    "ChallengeRepository",
    "GameRepository",
    "ProgressRepository",
    "SubmissionRepository",
    "PushSubscriptionRepository",
]
