"""
Entity wrappers for PostgreSQL models.

These classes wrap SQLAlchemy model instances to implement
the entity protocols defined in src/db/protocols.py.
"""

from __future__ import annotations

from typing import Optional, List
from datetime import date, datetime, timezone

from .models import (
    User as UserModel,
    Challenge as ChallengeModel,
    Game as GameModel,
    GameProgress as ProgressModel,
    GameSubmission as SubmissionModel,
)

from ..protocols import JsonDict

UTC = timezone.utc


def _aware(ts: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts


class UserEntity:
    """Wrapper around User model implementing UserEntityProtocol."""

    __slots__ = ("_model",)

    def __init__(self, model: UserModel) -> None:
        self._model = model

    @property
    def key_id(self) -> str:
        return self._model.id

    @property
    def name(self) -> str:
        return self._model.name or ""

    @property
    def email(self) -> str:
        return self._model.email or ""

    @property
    def is_verified(self) -> bool:
        return bool(self._model.is_verified)

    @property
    def created_at(self) -> datetime:
        return _aware(self._model.created_at)  # type: ignore[return-value]


class ChallengeEntity:
    """Wrapper around Challenge model implementing ChallengeEntityProtocol."""

    __slots__ = ("_model",)

    def __init__(self, model: ChallengeModel) -> None:
        self._model = model

    @property
    def key_id(self) -> str:
        return self._model.id

    @property
    def name(self) -> str:
        return self._model.name or ""

    @property
    def start_date(self) -> date:
        return self._model.start_date

    @property
    def end_date(self) -> date:
        return self._model.end_date

    @property
    def word_bank(self) -> List[str]:
        return list(self._model.word_bank or [])


class GameEntity:
    """Wrapper around Game model implementing GameEntityProtocol."""

    __slots__ = ("_model",)

    def __init__(self, model: GameModel) -> None:
        self._model = model

    @property
    def key_id(self) -> str:
        return self._model.id

    @property
    def challenge_id(self) -> str:
        return self._model.challenge_id

    @property
    def date(self) -> date:
        return self._model.date

    @property
    def type(self) -> str:
        return self._model.type

    @property
    def data(self) -> JsonDict:
        return self._model.data or {}


class ProgressEntity:
    """Wrapper around GameProgress model implementing ProgressEntityProtocol."""

    __slots__ = ("_model",)

    def __init__(self, model: ProgressModel) -> None:
        self._model = model

    @property
    def key_id(self) -> str:
        return self._model.id

    @property
    def user_id(self) -> str:
        return self._model.user_id

    @property
    def game_id(self) -> str:
        return self._model.game_id

    @property
    def game_state(self) -> JsonDict:
        return self._model.game_state or {}

    @property
    def updated_at(self) -> datetime:
        return _aware(self._model.updated_at)  # type: ignore[return-value]


class SubmissionEntity:
    """Wrapper around GameSubmission model implementing SubmissionEntityProtocol."""

    __slots__ = ("_model",)

    def __init__(self, model: SubmissionModel) -> None:
        self._model = model

    @property
    def key_id(self) -> str:
        return self._model.id

    @property
    def user_id(self) -> str:
        return self._model.user_id

    @property
    def game_id(self) -> str:
        return self._model.game_id

    @property
    def challenge_id(self) -> str:
        return self._model.challenge_id

    @property
    def started_at(self) -> datetime:
        return _aware(self._model.started_at)  # type: ignore[return-value]

    @property
    def completed_at(self) -> datetime:
        return _aware(self._model.completed_at)  # type: ignore[return-value]

    @property
    def time_taken(self) -> int:
        return self._model.time_taken

    @property
    def mistakes(self) -> int:
        return self._model.mistakes

    @property
    def score(self) -> int:
        return self._model.score

    @property
    def submission_data(self) -> JsonDict:
        return self._model.submission_data or {}
