"""

    Scoring engine

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module computes the integer score of a finished game from the
    play telemetry reported by the client, and applies the late-submission
    decay. It is shared by the live submission path and by the score
    recalculation utility.

    All functions here are pure: no I/O, no clock reads (the processing
    time is passed in), and they never raise on malformed telemetry; bad
    or missing counters simply count as zero.

"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Protocol, Tuple
from datetime import date, datetime, timezone
import math

from config import CHALLENGE_TIMEZONE, LATE_PENALTY_PER_DAY, SUBMISSION_GRACE_DAYS
from gametypes import (
    CONNECTIONS,
    CROSSWORD,
    MATCH_THE_WORD,
    VERSE_SCRAMBLE,
    WHO_AM_I,
    WORD_SEARCH,
    WORDLE_FAMILY,
)


class ScoredGame(Protocol):
    """The parts of a (resolved) game that scoring looks at"""

    @property
    def type(self) -> str: ...

    @property
    def date(self) -> date: ...

    @property
    def data(self) -> Mapping[str, Any]: ...


class CrosswordGrade(NamedTuple):
    correct_cells: int
    total_fillable_cells: int
    mistakes: int


def js_round(x: float) -> int:
    """Round half up, as the web client does, rather than
    Python's round-half-to-even"""
    return int(math.floor(x + 0.5))


def _number(value: Any) -> float:
    """Coerce a telemetry value to a number, defaulting to zero"""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        try:
            f = float(value)
        except ValueError:
            return 0.0
        return f if math.isfinite(f) else 0.0
    return 0.0


def _count(sd: Mapping[str, Any], *keys: str) -> int:
    """Return the first available counter among the keys. A list
    counts as its length, so the client may report either
    'foundPairsCount' or the 'foundPairs' list itself."""
    for key in keys:
        value = sd.get(key)
        if value is None:
            continue
        if isinstance(value, list):
            return len(value)
        return int(_number(value))
    return 0


def challenge_day(ts: datetime) -> date:
    """The civil calendar day of a timestamp in the challenge time zone.
    Naive timestamps are taken to be UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(CHALLENGE_TIMEZONE).date()


def days_late(game_date: date, processed_at: datetime) -> int:
    """Whole calendar days from the game date to the processing day,
    floored at zero"""
    return max(0, (challenge_day(processed_at) - game_date).days)


def late_multiplier(diff_days: int) -> float:
    """Linear decay, 1.0 on the game day and 0.0 from the last day
    of the grace window onwards"""
    if diff_days > SUBMISSION_GRACE_DAYS:
        return 0.0
    return max(0.0, 1 - diff_days * LATE_PENALTY_PER_DAY)


def count_fillable_cells(puzzle: Mapping[str, Any]) -> int:
    """Number of distinct grid cells covered by clues that carry answers"""
    return len(_solution_cells(puzzle))


def _solution_cells(puzzle: Mapping[str, Any]) -> Dict[Tuple[int, int], str]:
    """Map (row, col) to the solution letter, built from the clues"""
    rows = int(_number(puzzle.get("rows")))
    cols = int(_number(puzzle.get("cols")))
    cells: Dict[Tuple[int, int], str] = {}
    clues: List[Any] = list(puzzle.get("acrossClues") or []) + list(
        puzzle.get("downClues") or []
    )
    for clue in clues:
        if not isinstance(clue, Mapping):
            continue
        answer = clue.get("answer")
        if not answer:
            continue
        across = clue.get("direction") == "across"
        row = int(_number(clue.get("row")))
        col = int(_number(clue.get("col")))
        for i, letter in enumerate(str(answer)):
            r, c = (row, col + i) if across else (row + i, col)
            if 0 <= r < rows and 0 <= c < cols:
                cells[(r, c)] = letter
    return cells


def grade_crossword(puzzle: Mapping[str, Any], grid: Any) -> CrosswordGrade:
    """Compare a player's grid against the solution derived from the
    clues. Filled-in wrong cells are mistakes; empty cells are not."""
    cells = _solution_cells(puzzle)
    correct = 0
    mistakes = 0
    if not isinstance(grid, list):
        grid = []
    for (r, c), letter in cells.items():
        row = grid[r] if r < len(grid) and isinstance(grid[r], list) else None
        guess = row[c] if row is not None and c < len(row) else None
        if guess == letter:
            correct += 1
        elif guess:
            mistakes += 1
    return CrosswordGrade(correct, len(cells), mistakes)


def _wordle_score(mistakes: int) -> int:
    return (6 - mistakes) * 10 if mistakes < 6 else 0


def _crossword_score(sd: Mapping[str, Any], time_taken: int) -> int:
    total = _number(sd.get("totalFillableCells"))
    if total <= 0:
        return 0
    # A client-reported count cannot exceed the puzzle
    correct = min(_number(sd.get("correctCells")), total)
    accuracy = js_round(correct / total * 70)
    time_bonus = max(0, 30 - time_taken // 60)
    return max(0, accuracy + time_bonus)


def _verse_scramble_score(sd: Mapping[str, Any], time_taken: int, mistakes: int) -> int:
    if not sd.get("completed"):
        return 0
    return 50 + max(0, 30 - mistakes * 5) + max(0, 20 - time_taken // 10)


def _word_search_score(
    data: Mapping[str, Any], sd: Mapping[str, Any], time_taken: int
) -> int:
    found = _count(sd, "wordsFound", "foundWordsCount", "foundWords")
    total = _count(sd, "totalWords")
    if total <= 0:
        total = len(data.get("words") or [])
    bonus = 20 if found == total else 0
    return found * 10 + bonus + max(0, 30 - time_taken // 20)


def base_score(
    game_type: str,
    data: Mapping[str, Any],
    submission_data: Optional[Mapping[str, Any]],
    time_taken: int,
    mistakes: int,
) -> int:
    """The score of an on-time submission, before late decay"""
    sd: Mapping[str, Any] = submission_data or {}
    time_taken = max(0, int(_number(time_taken)))
    mistakes = max(0, int(_number(mistakes)))

    if game_type in WORDLE_FAMILY or game_type == WHO_AM_I:
        return _wordle_score(mistakes)
    if game_type == CONNECTIONS:
        found = _count(sd, "categoriesFound", "foundGroups")
        return max(0, found * 20 - mistakes * 5)
    if game_type == CROSSWORD:
        return _crossword_score(sd, time_taken)
    if game_type == MATCH_THE_WORD:
        found = _count(sd, "foundPairsCount", "foundPairs")
        return max(0, found * 20 - mistakes * 10)
    if game_type == VERSE_SCRAMBLE:
        return _verse_scramble_score(sd, time_taken, mistakes)
    if game_type == WORD_SEARCH:
        return _word_search_score(data, sd, time_taken)
    return max(0, 100 - mistakes * 10 - time_taken // 15)


def apply_late_penalty(score: int, diff_days: int) -> int:
    if diff_days > SUBMISSION_GRACE_DAYS:
        return 0
    return max(0, js_round(score * late_multiplier(diff_days)))


def calculate_score(
    game: ScoredGame,
    submission_data: Optional[Mapping[str, Any]],
    time_taken: int,
    mistakes: int,
    processed_at: datetime,
) -> int:
    """Final score of a submission of the given (resolved) game,
    processed at the given moment"""
    return score_breakdown(game, submission_data, time_taken, mistakes, processed_at)[2]


def score_breakdown(
    game: ScoredGame,
    submission_data: Optional[Mapping[str, Any]],
    time_taken: int,
    mistakes: int,
    processed_at: datetime,
) -> Tuple[int, int, int]:
    """Return (base score, days late, final score), for logging"""
    base = base_score(game.type, game.data, submission_data, time_taken, mistakes)
    diff = days_late(game.date, processed_at)
    return base, diff, apply_late_penalty(base, diff)
