"""

    Background tasks for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module implements the batch jobs of the server:

    run_daily_maintenance() makes sure the active challenge has a game
    for the day and assigns a variant of it to every verified user ahead
    of their first visit. It is normally invoked by the Cloud Scheduler
    via /tasks/maintenance shortly after midnight, US Eastern time, and
    is safe to rerun.

    send_daily_reminders() pushes a reminder to users who have registered
    a device and have not yet played the day's game (/tasks/reminders).

    recalculate_scores() and cleanup_progress() are repair utilities,
    run from the command line (see the utils directory).

    Each job works against a database backend passed in by the caller;
    per-user failures are logged and skipped, so that one bad row cannot
    block the batch.

"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from config import DEFAULT_GAME_TYPE, REMINDER_BODY, REMINDER_TITLE
from db.protocols import DatabaseBackendProtocol, GameEntityProtocol
from firebase import NotifierProtocol
from logic import prepare_submission_data, today
from resolver import resolve
from scoring import calculate_score
from gametypes import SOURCE_RANDOM


# Names of the game types as shown in reminder notifications
GAME_TYPE_NAMES: Dict[str, str] = {
    "wordle": "Wordle",
    "wordle_advanced": "Wordle",
    "wordle_bank": "Wordle",
    "connections": "Connections",
    "crossword": "Crossword",
    "match_the_word": "Match the Word",
    "verse_scramble": "Verse Scramble",
    "who_am_i": "Who Am I?",
    "word_search": "Word Search",
}


@dataclass
class MaintenanceReport:
    date: date
    challenge_id: Optional[str] = None
    game_id: Optional[str] = None
    created_game: bool = False
    users: int = 0
    assigned: int = 0
    failed: List[str] = field(default_factory=list)


@dataclass
class ReminderReport:
    date: date
    game_id: Optional[str] = None
    recipients: int = 0
    devices: int = 0
    failed: List[str] = field(default_factory=list)


@dataclass
class RecalculationReport:
    processed: int = 0
    changed: int = 0
    dry_run: bool = False


def placeholder_game_id(challenge_id: str, day: date) -> str:
    return f"game-{challenge_id}-{day.isoformat()}"


def ensure_game(
    db: DatabaseBackendProtocol, challenge_id: str, day: date
) -> Tuple[GameEntityProtocol, bool]:
    """Return the game of the challenge on the given day, creating a
    placeholder if none exists. The second element of the result is
    True if the game was created by this call."""
    game = db.games.get_for_challenge_on_date(challenge_id, day)
    if game is not None:
        return game, False
    try:
        with db.transaction():
            game = db.games.create(
                challenge_id,
                day,
                DEFAULT_GAME_TYPE,
                {},
                game_id=placeholder_game_id(challenge_id, day),
            )
        logging.info(
            f"Created placeholder {DEFAULT_GAME_TYPE} game {game.key_id} for {day}"
        )
        return game, True
    except IntegrityError:
        # A concurrent run created the same placeholder
        game = db.games.get_by_id(placeholder_game_id(challenge_id, day))
        if game is None:
            raise
        return game, False


def run_daily_maintenance(
    db: DatabaseBackendProtocol,
    target_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> MaintenanceReport:
    """Ensure today's game exists and pre-assign variants to all
    verified users"""
    day = target_date or today(now)
    report = MaintenanceReport(date=day)
    logging.info(f"Starting daily maintenance for {day}")

    challenge = db.challenges.get_active(day)
    if challenge is None:
        logging.info(f"No active challenge on {day}; nothing to do")
        return report
    report.challenge_id = challenge.key_id

    game, report.created_game = ensure_game(db, challenge.key_id, day)
    report.game_id = game.key_id

    for user_id in db.users.list_verified_ids():
        report.users += 1
        try:
            with db.transaction():
                resolved = resolve(db, game, user_id)
        except Exception as e:
            logging.error(
                f"Failed to assign game {game.key_id} to user {user_id}: {repr(e)}"
            )
            report.failed.append(user_id)
            continue
        if resolved.source == SOURCE_RANDOM:
            report.assigned += 1

    logging.info(
        f"Daily maintenance for {day} completed: game {game.key_id}, "
        f"{report.users} users, {report.assigned} new assignments, "
        f"{len(report.failed)} failures"
    )
    return report


def send_daily_reminders(
    db: DatabaseBackendProtocol,
    notifier: NotifierProtocol,
    target_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> ReminderReport:
    """Remind verified users with a registered device who have
    not yet submitted today's game"""
    day = target_date or today(now)
    report = ReminderReport(date=day)

    challenge = db.challenges.get_active(day)
    if challenge is None:
        logging.info(f"No active challenge on {day}; no reminders sent")
        return report
    game = db.games.get_for_challenge_on_date(challenge.key_id, day)
    if game is None:
        logging.info(f"No game on {day} in challenge {challenge.key_id}; no reminders sent")
        return report
    report.game_id = game.key_id

    subscribed = db.push_subscriptions.list_user_ids()
    played = db.submissions.user_ids_for_game(game.key_id)
    recipients = [
        uid
        for uid in db.users.list_verified_ids()
        if uid in subscribed and uid not in played
    ]

    message = {
        "title": REMINDER_TITLE,
        "body": REMINDER_BODY.format(game=GAME_TYPE_NAMES.get(game.type, "challenge")),
    }
    data = {"gameId": game.key_id, "challengeId": challenge.key_id}

    for user_id in recipients:
        try:
            with db.transaction():
                devices = notifier.push_to_user(db, user_id, message, data)
        except Exception as e:
            logging.error(f"Failed to send reminder to user {user_id}: {repr(e)}")
            report.failed.append(user_id)
            continue
        if devices:
            report.recipients += 1
            report.devices += devices

    logging.info(
        f"Reminders for {day}: {report.recipients} users, {report.devices} devices"
    )
    return report


def recalculate_scores(
    db: DatabaseBackendProtocol,
    game_id: Optional[str] = None,
    user_id: Optional[str] = None,
    dry_run: bool = False,
) -> RecalculationReport:
    """Re-derive the score of stored submissions with the current scoring
    rules, using each submission's own completion time for the late
    penalty. Crossword grids are regraded against the resolved puzzle."""
    report = RecalculationReport(dry_run=dry_run)
    mode = "DRY RUN" if dry_run else "LIVE update"
    logging.info(
        f"Starting recalculation ({mode}); game: {game_id or 'ALL'}, "
        f"user: {user_id or 'ALL'}"
    )
    games: Dict[str, Optional[GameEntityProtocol]] = {}
    for sub in db.submissions.list_filtered(game_id=game_id, user_id=user_id):
        report.processed += 1
        if sub.game_id not in games:
            games[sub.game_id] = db.games.get_by_id(sub.game_id)
        game = games[sub.game_id]
        if game is None:
            continue
        resolved = resolve(db, game, sub.user_id, persist=False)
        sd, mistakes = prepare_submission_data(
            resolved, sub.submission_data, sub.mistakes
        )
        score = calculate_score(resolved, sd, sub.time_taken, mistakes, sub.completed_at)
        if score == sub.score and mistakes == sub.mistakes:
            continue
        report.changed += 1
        logging.info(
            f"[CHANGE] User {sub.user_id} game {sub.game_id}: score {sub.score} -> "
            f"{score} (mistakes {sub.mistakes} -> {mistakes})"
        )
        if not dry_run:
            db.submissions.update_score(sub.key_id, score, mistakes, sd)

    logging.info(
        f"Recalculation complete: {report.processed} processed, {report.changed} changed"
    )
    return report


def cleanup_progress(db: DatabaseBackendProtocol, dry_run: bool = False) -> int:
    """Delete progress records of games that the user has already
    submitted. Returns the number of records deleted (or that would
    be deleted, in a dry run)."""
    if dry_run:
        stale = db.progress.list_submitted()
        for p in stale:
            logging.info(f"Would delete progress of user {p.user_id} for game {p.game_id}")
        logging.info(f"Dry run: {len(stale)} progress records would be deleted")
        return len(stale)
    count = db.progress.delete_submitted()
    logging.info(f"Deleted {count} progress records of submitted games")
    return count
