"""
SQLAlchemy ORM models for the PostgreSQL backend.

JSON documents (game data, progress state, submission data and the
challenge word bank) are stored as JSONB on PostgreSQL and as plain
JSON elsewhere, which keeps the models usable on SQLite for local runs
and tests.
"""

from __future__ import annotations

from typing import Optional, List, Dict, Any
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    String,
    Integer,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)

# UTC timezone constant
UTC = timezone.utc

# JSONB on PostgreSQL, JSON on other dialects
JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class User(Base):
    """Registered user."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(256), nullable=False, default="", index=True)
    is_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, name={self.name!r})>"


class Challenge(Base):
    """A named, dated series of daily games."""

    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")

    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Candidate solutions shared by all wordle_bank games of the challenge
    word_bank: Mapped[List[str]] = mapped_column(JsonType, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Challenge(id={self.id!r}, name={self.name!r})>"


class Game(Base):
    """One day's puzzle within a challenge."""

    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    challenge_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Type-specific payload, which may contain candidate pools
    data: Mapped[Dict[str, Any]] = mapped_column(JsonType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_games_challenge_date", "challenge_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<Game(id={self.id!r}, type={self.type!r}, date={self.date})>"


class GameProgress(Base):
    """In-progress state of a user for a game; at most one per pair."""

    __tablename__ = "game_progress"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )

    game_state: Mapped[Dict[str, Any]] = mapped_column(
        JsonType, nullable=False, default=dict
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_game_progress_user_game"),
    )

    def __repr__(self) -> str:
        return f"<GameProgress(user_id={self.user_id!r}, game_id={self.game_id!r})>"


class GameSubmission(Base):
    """Best completed attempt of a user for a game; at most one per pair."""

    __tablename__ = "game_submissions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    time_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mistakes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    submission_data: Mapped[Dict[str, Any]] = mapped_column(
        JsonType, nullable=False, default=dict
    )

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="uq_game_submissions_user_game"),
        Index("ix_game_submissions_challenge_user", "challenge_id", "user_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<GameSubmission(user_id={self.user_id!r}, "
            f"game_id={self.game_id!r}, score={self.score})>"
        )


class PushSubscription(Base):
    """Device token registered by a user for push notifications."""

    __tablename__ = "push_subscriptions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    platform: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<PushSubscription(user_id={self.user_id!r}, platform={self.platform!r})>"
