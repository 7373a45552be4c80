"""
Protocol definitions for database backends.

This module defines the interface contracts that database backends must
implement. Using Protocol classes enables structural subtyping,
so backends don't need to explicitly inherit from these classes.

The game catalog, progress and submission stores are consumed by the
variant resolver, the submission logic and the daily maintenance job
exclusively through these protocols.
"""

from __future__ import annotations

from typing import (
    Protocol,
    Optional,
    List,
    Dict,
    Any,
    Sequence,
    Set,
    TypeVar,
    runtime_checkable,
)
from datetime import date, datetime
from dataclasses import dataclass


# =============================================================================
# Data Transfer Objects (shared across backends)
# =============================================================================


# Free-form JSON document, as stored in game data, progress and submissions
JsonDict = Dict[str, Any]


@dataclass
class LeaderboardRow:
    """Aggregate of one user's submissions within a challenge."""

    user_id: str
    name: str
    total_score: int
    games_played: int


@dataclass
class SubmissionInput:
    """A scored attempt, ready to be written to the submission store."""

    user_id: str
    game_id: str
    challenge_id: str
    started_at: datetime
    completed_at: datetime
    time_taken: int
    mistakes: int
    score: int
    submission_data: JsonDict


# =============================================================================
# Entity Protocols
# =============================================================================

T = TypeVar("T", covariant=True)


@runtime_checkable
class EntityProtocol(Protocol):
    """Base protocol for all database entities."""

    @property
    def key_id(self) -> str:
        """The entity's unique identifier."""
        ...


@runtime_checkable
class UserEntityProtocol(EntityProtocol, Protocol):
    """Protocol for User entities."""

    @property
    def name(self) -> str: ...

    @property
    def email(self) -> str: ...

    @property
    def is_verified(self) -> bool: ...

    @property
    def created_at(self) -> datetime: ...


@runtime_checkable
class ChallengeEntityProtocol(EntityProtocol, Protocol):
    """Protocol for Challenge entities."""

    @property
    def name(self) -> str: ...

    @property
    def start_date(self) -> date: ...

    @property
    def end_date(self) -> date: ...

    @property
    def word_bank(self) -> List[str]: ...


@runtime_checkable
class GameEntityProtocol(EntityProtocol, Protocol):
    """Protocol for Game entities (one day's puzzle within a challenge)."""

    @property
    def challenge_id(self) -> str: ...

    @property
    def date(self) -> date: ...

    @property
    def type(self) -> str: ...

    @property
    def data(self) -> JsonDict: ...


@runtime_checkable
class ProgressEntityProtocol(EntityProtocol, Protocol):
    """Protocol for per-(user, game) in-progress state."""

    @property
    def user_id(self) -> str: ...

    @property
    def game_id(self) -> str: ...

    @property
    def game_state(self) -> JsonDict: ...

    @property
    def updated_at(self) -> datetime: ...


@runtime_checkable
class SubmissionEntityProtocol(EntityProtocol, Protocol):
    """Protocol for completed, scored attempts."""

    @property
    def user_id(self) -> str: ...

    @property
    def game_id(self) -> str: ...

    @property
    def challenge_id(self) -> str: ...

    @property
    def started_at(self) -> datetime: ...

    @property
    def completed_at(self) -> datetime: ...

    @property
    def time_taken(self) -> int: ...

    @property
    def mistakes(self) -> int: ...

    @property
    def score(self) -> int: ...

    @property
    def submission_data(self) -> JsonDict: ...


# =============================================================================
# Repository Protocols
# =============================================================================


class UserRepositoryProtocol(Protocol):
    """Protocol for User repository operations."""

    def get_by_id(self, user_id: str) -> Optional[UserEntityProtocol]:
        """Fetch a user by their ID."""
        ...

    def create(
        self,
        name: str,
        email: str,
        is_verified: bool = False,
        user_id: Optional[str] = None,
    ) -> UserEntityProtocol:
        """Create a new user."""
        ...

    def list_verified_ids(self) -> List[str]:
        """Return the ids of all verified users."""
        ...

    def delete(self, user_id: str) -> None:
        """Delete a user."""
        ...


class ChallengeRepositoryProtocol(Protocol):
    """Protocol for Challenge repository operations."""

    def get_by_id(self, challenge_id: str) -> Optional[ChallengeEntityProtocol]:
        """Fetch a challenge by its ID."""
        ...

    def get_active(self, on_date: date) -> Optional[ChallengeEntityProtocol]:
        """Return the challenge whose date range includes the given day."""
        ...

    def create(
        self,
        name: str,
        start_date: date,
        end_date: date,
        word_bank: Optional[List[str]] = None,
        challenge_id: Optional[str] = None,
    ) -> ChallengeEntityProtocol:
        """Create a new challenge."""
        ...


class GameRepositoryProtocol(Protocol):
    """Protocol for the game catalog."""

    def get_by_id(self, game_id: str) -> Optional[GameEntityProtocol]:
        """Fetch a game by its ID."""
        ...

    def list_for_challenge(
        self, challenge_id: str, up_to: Optional[date] = None
    ) -> Sequence[GameEntityProtocol]:
        """Games of a challenge in date order, optionally only those
        dated on or before the given day."""
        ...

    def get_for_challenge_on_date(
        self, challenge_id: str, on_date: date
    ) -> Optional[GameEntityProtocol]:
        """The game of a challenge on a particular day, if any."""
        ...

    def create(
        self,
        challenge_id: str,
        on_date: date,
        game_type: str,
        data: JsonDict,
        game_id: Optional[str] = None,
    ) -> GameEntityProtocol:
        """Create a new game."""
        ...


class ProgressRepositoryProtocol(Protocol):
    """Protocol for the progress store."""

    def get(self, user_id: str, game_id: str) -> Optional[ProgressEntityProtocol]:
        """Fetch the progress record of a user for a game."""
        ...

    def upsert(self, user_id: str, game_id: str, game_state: JsonDict) -> None:
        """Insert or replace the state blob for (user, game).
        A conflicting insert updates the existing row."""
        ...

    def delete(self, user_id: str, game_id: str) -> bool:
        """Delete a progress record. Returns True if one existed."""
        ...

    def delete_for_user(self, user_id: str) -> None:
        """Delete all progress records of a user."""
        ...

    def list_submitted(self) -> Sequence[ProgressEntityProtocol]:
        """Progress records whose (user, game) already has a submission."""
        ...

    def delete_submitted(self) -> int:
        """Delete progress records whose (user, game) already has a
        submission. Returns the number of deleted rows."""
        ...


class SubmissionRepositoryProtocol(Protocol):
    """Protocol for the submission store."""

    def get(self, user_id: str, game_id: str) -> Optional[SubmissionEntityProtocol]:
        """Fetch the submission of a user for a game."""
        ...

    def insert_or_update(self, record: SubmissionInput) -> SubmissionEntityProtocol:
        """Insert a submission, or overwrite the existing one for the same
        (user, game) if and only if the new score is strictly higher.
        Returns the row as stored afterwards."""
        ...

    def update_score(
        self,
        submission_id: str,
        score: int,
        mistakes: int,
        submission_data: JsonDict,
    ) -> None:
        """Rewrite the scoring fields of a stored submission."""
        ...

    def list_for_user(
        self, user_id: str, challenge_id: str
    ) -> Sequence[SubmissionEntityProtocol]:
        """All submissions of a user within a challenge."""
        ...

    def list_filtered(
        self, game_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> Sequence[SubmissionEntityProtocol]:
        """Submissions, optionally restricted to a game and/or a user."""
        ...

    def user_ids_for_game(self, game_id: str) -> Set[str]:
        """Ids of the users who have submitted the given game."""
        ...

    def sum_scores_by_user(self, challenge_id: str) -> List[LeaderboardRow]:
        """Total score and game count per user within a challenge."""
        ...

    def delete_for_user(self, user_id: str) -> None:
        """Delete all submissions of a user."""
        ...


class PushSubscriptionRepositoryProtocol(Protocol):
    """Protocol for device tokens used for push notifications."""

    def subscribe(self, user_id: str, token: str, platform: str = "") -> None:
        """Register a device token; an existing token moves to this user."""
        ...

    def unsubscribe(self, token: str) -> bool:
        """Remove a device token. Returns True if it existed."""
        ...

    def list_tokens(self, user_id: str) -> List[str]:
        """Device tokens of a user."""
        ...

    def list_user_ids(self) -> Set[str]:
        """Ids of all users having at least one device token."""
        ...

    def delete_for_user(self, user_id: str) -> None:
        """Delete all device tokens of a user."""
        ...


# =============================================================================
# Transaction Context Protocol
# =============================================================================


class TransactionContextProtocol(Protocol):
    """Protocol for transaction context managers."""

    def __enter__(self) -> TransactionContextProtocol:
        ...

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        ...


# =============================================================================
# Database Backend Protocol
# =============================================================================


class DatabaseBackendProtocol(Protocol):
    """Protocol for the complete database backend.

    This is the main entry point for database operations. Implementations
    provide access to all entity repositories and transaction management.
    """

    @property
    def users(self) -> UserRepositoryProtocol:
        """Access the User repository."""
        ...

    @property
    def challenges(self) -> ChallengeRepositoryProtocol:
        """Access the Challenge repository."""
        ...

    @property
    def games(self) -> GameRepositoryProtocol:
        """Access the Game repository."""
        ...

    @property
    def progress(self) -> ProgressRepositoryProtocol:
        """Access the Progress repository."""
        ...

    @property
    def submissions(self) -> SubmissionRepositoryProtocol:
        """Access the Submission repository."""
        ...

    @property
    def push_subscriptions(self) -> PushSubscriptionRepositoryProtocol:
        """Access the push subscription repository."""
        ...

    def transaction(self) -> TransactionContextProtocol:
        """Begin a database transaction.

        Usage:
            with db.transaction():
                db.submissions.delete_for_user(user_id)
                db.users.delete(user_id)
        """
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...

    def close(self) -> None:
        """Close database connections and clean up resources."""
        ...
