"""
Tests for the scoring engine.

Scoring is pure, so these tests need no database.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict

import pytest

from scoring import (
    apply_late_penalty,
    base_score,
    calculate_score,
    count_fillable_cells,
    days_late,
    grade_crossword,
    js_round,
    late_multiplier,
    score_breakdown,
)

UTC = timezone.utc

GAME_DAY = date(2025, 3, 10)
# Noon in New York on the game day
GAME_DAY_NOON = datetime(2025, 3, 10, 16, 0, tzinfo=UTC)


def _game(game_type: str) -> Any:
    return SimpleNamespace(type=game_type, date=GAME_DAY, data={})


class TestBaseScores:
    def test_wordle(self) -> None:
        """Solved in four guesses: two mistakes"""
        assert base_score("wordle", {}, {}, 95, 2) == 40
        assert base_score("wordle", {}, {}, 95, 0) == 60
        assert base_score("wordle", {}, {}, 95, 6) == 0

    @pytest.mark.parametrize("game_type", ["wordle_advanced", "wordle_bank", "who_am_i"])
    def test_wordle_rule_family(self, game_type: str) -> None:
        assert base_score(game_type, {}, {}, 0, 1) == 50

    def test_connections(self) -> None:
        sd = {"categoriesFound": 3}
        assert base_score("connections", {}, sd, 200, 2) == 50
        assert base_score("connections", {}, {"categoriesFound": 0}, 0, 4) == 0

    def test_connections_found_groups_list(self) -> None:
        sd = {"foundGroups": [["A"], ["B"], ["C"], ["D"]]}
        assert base_score("connections", {}, sd, 0, 1) == 75

    def test_crossword(self) -> None:
        sd = {"correctCells": 35, "totalFillableCells": 40}
        # round(35/40*70) = 61, time bonus 30 - 1 = 29
        assert base_score("crossword", {}, sd, 90, 0) == 90

    def test_crossword_correct_cells_capped_at_total(self) -> None:
        sd = {"correctCells": 50, "totalFillableCells": 40}
        assert base_score("crossword", {}, sd, 90, 0) == 99

    def test_crossword_without_cells(self) -> None:
        assert base_score("crossword", {}, {"correctCells": 5}, 10, 0) == 0
        assert base_score("crossword", {}, {"totalFillableCells": 0}, 10, 0) == 0

    def test_crossword_time_bonus_floor(self) -> None:
        sd = {"correctCells": 40, "totalFillableCells": 40}
        assert base_score("crossword", {}, sd, 3600, 0) == 70

    def test_match_the_word(self) -> None:
        assert base_score("match_the_word", {}, {"foundPairsCount": 4}, 0, 1) == 70
        assert base_score("match_the_word", {}, {"foundPairs": [1, 2, 3]}, 0, 0) == 60
        assert base_score("match_the_word", {}, {"foundPairsCount": 1}, 0, 5) == 0

    def test_verse_scramble(self) -> None:
        assert base_score("verse_scramble", {}, {"completed": True}, 50, 2) == 85
        assert base_score("verse_scramble", {}, {"completed": True}, 1000, 10) == 50
        assert base_score("verse_scramble", {}, {"completed": False}, 5, 0) == 0

    def test_word_search(self) -> None:
        sd = {"wordsFound": 5, "totalWords": 5}
        assert base_score("word_search", {}, sd, 100, 0) == 95

    def test_word_search_total_from_game_data(self) -> None:
        data = {"words": ["A", "B", "C", "D", "E", "F"]}
        assert base_score("word_search", data, {"foundWords": ["A"] * 5}, 100, 0) == 75

    def test_default_rule(self) -> None:
        assert base_score("trivia", {}, {}, 30, 2) == 78
        assert base_score("trivia", {}, {}, 3000, 20) == 0

    def test_malformed_telemetry_scores_zero(self) -> None:
        sd = {"categoriesFound": "many", "correctCells": None}
        assert base_score("connections", {}, sd, 0, 0) == 0
        assert base_score("crossword", {}, {"totalFillableCells": "x"}, 0, 0) == 0
        assert base_score("wordle", {}, None, "soon", "none") == 60  # type: ignore


class TestLatePenalty:
    def test_js_round_half_up(self) -> None:
        assert js_round(0.5) == 1
        assert js_round(2.5) == 3
        assert js_round(7.9999999) == 8

    def test_multiplier(self) -> None:
        assert late_multiplier(0) == 1.0
        assert late_multiplier(1) == pytest.approx(0.8)
        assert late_multiplier(5) == 0.0
        assert late_multiplier(6) == 0.0

    def test_decay_sequence(self) -> None:
        """A Wordle worth 40 decays by a fifth per day"""
        assert [apply_late_penalty(40, d) for d in range(7)] == [40, 32, 24, 16, 8, 0, 0]

    def test_days_late_uses_challenge_timezone(self) -> None:
        # 23:30 in New York is still the game day, though it is
        # already the next day in UTC
        late_evening = datetime(2025, 3, 11, 3, 30, tzinfo=UTC)
        assert days_late(GAME_DAY, late_evening) == 0
        # 00:30 in New York the day after
        after_midnight = datetime(2025, 3, 11, 4, 30, tzinfo=UTC)
        assert days_late(GAME_DAY, after_midnight) == 1

    def test_early_submission_is_not_late(self) -> None:
        assert days_late(GAME_DAY, GAME_DAY_NOON - timedelta(days=2)) == 0

    def test_breakdown(self) -> None:
        game = _game("crossword")
        sd = {"correctCells": 35, "totalFillableCells": 40}
        assert score_breakdown(game, sd, 90, 0, GAME_DAY_NOON) == (90, 0, 90)
        assert score_breakdown(
            game, sd, 90, 0, GAME_DAY_NOON + timedelta(days=1)
        ) == (90, 1, 72)

    def test_calculate_score(self) -> None:
        game = _game("wordle")
        assert calculate_score(game, {}, 60, 2, GAME_DAY_NOON) == 40
        assert calculate_score(game, {}, 60, 2, GAME_DAY_NOON + timedelta(days=3)) == 16
        assert calculate_score(game, {}, 60, 2, GAME_DAY_NOON + timedelta(days=5)) == 0


class TestCrosswordGrading:
    def test_fillable_cells(self, crossword: Dict[str, Any]) -> None:
        assert count_fillable_cells(crossword) == 7
        assert count_fillable_cells({"rows": 3, "cols": 3}) == 0

    def test_perfect_grid(self, crossword: Dict[str, Any]) -> None:
        grid = [["E", "W", "E"], ["D", "", ""], ["A", "B", "A"]]
        assert tuple(grade_crossword(crossword, grid)) == (7, 7, 0)

    def test_wrong_and_empty_cells(self, crossword: Dict[str, Any]) -> None:
        # One wrong letter, one empty cell
        grid = [["E", "X", "E"], ["D", "", ""], ["A", "", "A"]]
        grade = grade_crossword(crossword, grid)
        assert grade.correct_cells == 5
        assert grade.total_fillable_cells == 7
        assert grade.mistakes == 1

    def test_malformed_grid(self, crossword: Dict[str, Any]) -> None:
        assert tuple(grade_crossword(crossword, "EWE")) == (0, 7, 0)
        assert tuple(grade_crossword(crossword, [["E"]])) == (1, 7, 0)
