"""

    Application logic layer for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module contains a middle layer between the server APIs
    (found in api.py) and the variant resolver, the scoring engine
    and the database backend. Every function takes the database
    backend as its first parameter; request-level concerns such as
    identity and JSON encoding stay in api.py.

"""

from __future__ import annotations

from typing import (
    Any,
    List,
    Mapping,
    Optional,
    Tuple,
    TypedDict,
)

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from config import SUBMISSION_GRACE_DAYS
from db.protocols import (
    DatabaseBackendProtocol,
    GameEntityProtocol,
    JsonDict,
    ProgressEntityProtocol,
    SubmissionEntityProtocol,
    SubmissionInput,
)
from db.testing import get_current_time
from errors import Forbidden, NotFound, Transient, ValidationError
from gametypes import (
    ASSIGNMENT_FIELDS,
    CROSSWORD,
    LeaderboardEntry,
    SubmissionDict,
)
from resolver import ResolvedGame, resolve, variant_stamp
from scoring import (
    challenge_day,
    count_fillable_cells,
    days_late,
    grade_crossword,
    score_breakdown,
)


class ChallengeDict(TypedDict):
    id: str
    name: str
    startDate: str
    endDate: str


class ProgressDict(TypedDict):
    id: str
    userId: str
    gameId: str
    gameState: JsonDict
    updatedAt: str


def _iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp sent by a client. A trailing 'Z' is
    accepted, and naive timestamps are taken to be UTC."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("Invalid timestamp")
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError("Invalid timestamp")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def today(now: Optional[datetime] = None) -> date:
    """The current civil day in the challenge time zone"""
    return challenge_day(now or get_current_time())


# =============================================================================
# Challenges and games
# =============================================================================


def active_challenge(
    db: DatabaseBackendProtocol, now: Optional[datetime] = None
) -> Optional[ChallengeDict]:
    """Return the challenge running today, or None"""
    challenge = db.challenges.get_active(today(now))
    if challenge is None:
        return None
    return ChallengeDict(
        id=challenge.key_id,
        name=challenge.name,
        startDate=challenge.start_date.isoformat(),
        endDate=challenge.end_date.isoformat(),
    )


def load_game(db: DatabaseBackendProtocol, game_id: str) -> GameEntityProtocol:
    game = db.games.get_by_id(game_id) if game_id else None
    if game is None:
        raise NotFound("Game not found")
    return game


def daily_game(
    db: DatabaseBackendProtocol,
    challenge_id: str,
    user_id: Optional[str],
    now: Optional[datetime] = None,
) -> Optional[ResolvedGame]:
    """Today's game of a challenge, resolved for the user, or None"""
    game = db.games.get_for_challenge_on_date(challenge_id, today(now))
    if game is None:
        return None
    return resolve(db, game, user_id)


def game_for_user(
    db: DatabaseBackendProtocol, game_id: str, user_id: Optional[str]
) -> ResolvedGame:
    return resolve(db, load_game(db, game_id), user_id)


def challenge_games(
    db: DatabaseBackendProtocol,
    challenge_id: str,
    user_id: Optional[str],
    now: Optional[datetime] = None,
) -> List[ResolvedGame]:
    """All games of a challenge up to and including today, in date
    order, each resolved for the user"""
    games = db.games.list_for_challenge(challenge_id, up_to=today(now))
    return [resolve(db, game, user_id) for game in games]


# =============================================================================
# Submissions
# =============================================================================


def submission_to_dict(sub: SubmissionEntityProtocol) -> SubmissionDict:
    return SubmissionDict(
        id=sub.key_id,
        userId=sub.user_id,
        gameId=sub.game_id,
        challengeId=sub.challenge_id,
        startedAt=_iso(sub.started_at),
        completedAt=_iso(sub.completed_at),
        timeTaken=sub.time_taken,
        mistakes=sub.mistakes,
        score=sub.score,
        submissionData=dict(sub.submission_data),
    )


def _non_negative_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise ValidationError(f"Invalid {name}")
    return value


def prepare_submission_data(
    resolved: ResolvedGame, submission_data: Mapping[str, Any], mistakes: int
) -> Tuple[JsonDict, int]:
    """Stamp the resolved variant into the submission data and, for
    crosswords, regrade the player's grid against the resolved puzzle.
    Returns the submission data to store and the mistake count to use.
    Assignment fields sent by the client are discarded."""
    sd = public_state(submission_data)
    sd.update(variant_stamp(resolved))
    if resolved.type == CROSSWORD:
        if "grid" in sd:
            grade = grade_crossword(resolved.data, sd["grid"])
            sd["correctCells"] = grade.correct_cells
            sd["totalFillableCells"] = grade.total_fillable_cells
            mistakes = grade.mistakes
        elif (total := count_fillable_cells(resolved.data)) > 0:
            sd["totalFillableCells"] = total
    return sd, mistakes


def submit(
    db: DatabaseBackendProtocol,
    user_id: str,
    game_id: str,
    time_taken: Any,
    mistakes: Any,
    submission_data: Any = None,
    started_at: Any = None,
    now: Optional[datetime] = None,
) -> SubmissionDict:
    """Score a finished game and store it if it beats the user's
    previous attempt. Returns the submission as stored afterwards,
    which is the earlier record when the new score is not higher."""
    if not user_id:
        raise ValidationError("Missing userId")
    if not game_id:
        raise ValidationError("Missing gameId")
    time_taken = _non_negative_int(time_taken, "timeTaken")
    mistakes = _non_negative_int(mistakes, "mistakes")
    if submission_data is None:
        submission_data = {}
    if not isinstance(submission_data, dict):
        raise ValidationError("Invalid submissionData")
    started = parse_timestamp(started_at)

    now = now or get_current_time()
    try:
        game = load_game(db, game_id)
        if db.users.get_by_id(user_id) is None:
            raise NotFound("User not found")

        diff_days = days_late(game.date, now)
        if diff_days > SUBMISSION_GRACE_DAYS:
            raise Forbidden("Submissions for this game are closed")

        resolved = resolve(db, game, user_id, persist=False)
        sd, mistakes = prepare_submission_data(resolved, submission_data, mistakes)
        base, _, score = score_breakdown(resolved, sd, time_taken, mistakes, now)

        previous = db.submissions.get(user_id, game_id)
        # Read now: the entity is refreshed in place by the upsert below
        previous_score = None if previous is None else previous.score
        stored = db.submissions.insert_or_update(
            SubmissionInput(
                user_id=user_id,
                game_id=game_id,
                challenge_id=game.challenge_id,
                started_at=started or now - timedelta(seconds=time_taken),
                completed_at=now,
                time_taken=time_taken,
                mistakes=mistakes,
                score=score,
                submission_data=sd,
            )
        )
    except SQLAlchemyError as e:
        logging.error(
            f"Storage failure in submit for user {user_id}, game {game_id}: {e}"
        )
        raise Transient() from e

    if previous_score is not None and score <= previous_score:
        logging.info(
            f"Kept earlier submission of user {user_id} for game {game_id} "
            f"(score {previous_score}, new attempt {score})"
        )
    else:
        logging.info(
            f"Stored submission of user {user_id} for game {game_id}: "
            f"base {base}, {diff_days} day(s) late, score {score}"
        )
    return submission_to_dict(stored)


def user_submissions(
    db: DatabaseBackendProtocol, user_id: str, challenge_id: str
) -> List[SubmissionDict]:
    return [
        submission_to_dict(s)
        for s in db.submissions.list_for_user(user_id, challenge_id)
    ]


def user_game_submission(
    db: DatabaseBackendProtocol, user_id: str, game_id: str
) -> Optional[SubmissionDict]:
    sub = db.submissions.get(user_id, game_id)
    return None if sub is None else submission_to_dict(sub)


# =============================================================================
# Progress
# =============================================================================


def public_state(state: Mapping[str, Any]) -> JsonDict:
    """The game state without the fields owned by the variant resolver,
    which would reveal the assigned answer"""
    return {k: v for k, v in state.items() if k not in ASSIGNMENT_FIELDS}


def _progress_to_dict(progress: ProgressEntityProtocol) -> ProgressDict:
    return ProgressDict(
        id=progress.key_id,
        userId=progress.user_id,
        gameId=progress.game_id,
        gameState=public_state(progress.game_state),
        updatedAt=_iso(progress.updated_at),
    )


def get_progress(
    db: DatabaseBackendProtocol, user_id: str, game_id: str
) -> Optional[ProgressDict]:
    progress = db.progress.get(user_id, game_id)
    return None if progress is None else _progress_to_dict(progress)


def merge_state(
    stored: Optional[Mapping[str, Any]], incoming: Mapping[str, Any]
) -> JsonDict:
    """The client owns everything in the state except the resolver's
    assignment fields, which are kept from the stored record and can
    be neither set nor cleared by a save"""
    merged = public_state(incoming)
    if stored:
        merged.update((k, v) for k, v in stored.items() if k in ASSIGNMENT_FIELDS)
    return merged


def save_progress(
    db: DatabaseBackendProtocol, user_id: str, game_id: str, game_state: Any
) -> ProgressDict:
    if not isinstance(game_state, dict):
        raise ValidationError("Invalid gameState")
    load_game(db, game_id)
    if db.users.get_by_id(user_id) is None:
        raise NotFound("User not found")
    existing = db.progress.get(user_id, game_id)
    merged = merge_state(existing.game_state if existing else None, game_state)
    db.progress.upsert(user_id, game_id, merged)
    saved = db.progress.get(user_id, game_id)
    assert saved is not None
    return _progress_to_dict(saved)


def delete_progress(db: DatabaseBackendProtocol, user_id: str, game_id: str) -> bool:
    return db.progress.delete(user_id, game_id)


# =============================================================================
# Leaderboard and accounts
# =============================================================================


def leaderboard(db: DatabaseBackendProtocol, challenge_id: str) -> List[LeaderboardEntry]:
    """Users ranked by total score within a challenge. Equal totals
    share a rank, and the next rank skips accordingly (1, 2, 2, 4)."""
    result: List[LeaderboardEntry] = []
    rank = 0
    previous_total: Optional[int] = None
    for position, row in enumerate(db.submissions.sum_scores_by_user(challenge_id), 1):
        if row.total_score != previous_total:
            rank = position
            previous_total = row.total_score
        result.append(
            LeaderboardEntry(
                rank=rank,
                userId=row.user_id,
                name=row.name,
                totalScore=row.total_score,
                gamesPlayed=row.games_played,
            )
        )
    return result


def delete_account(db: DatabaseBackendProtocol, user_id: str) -> None:
    """Erase a user and everything stored about them, all or nothing"""
    if db.users.get_by_id(user_id) is None:
        raise NotFound("User not found")
    with db.transaction():
        db.submissions.delete_for_user(user_id)
        db.progress.delete_for_user(user_id)
        db.push_subscriptions.delete_for_user(user_id)
        db.users.delete(user_id)
    logging.info(f"Deleted account of user {user_id}")
