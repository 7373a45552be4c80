"""

    Variant resolver

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    Many daily games offer several candidate puzzles: a list of Wordle
    solutions, a challenge-wide word bank, a pool of Connections
    categories, a list of verses, and so on. Each user gets exactly one
    of them, and keeps getting the same one.

    resolve() returns a client-safe copy of a game in which exactly one
    candidate has been selected and the candidate list removed. The
    selection is made by the first of an ordered list of strategies that
    produces a value:

    1. the variant recorded in the user's submission for the game,
    2. the variant cached in the user's progress record,
    3. a fresh uniformly random choice, persisted to the progress record.

    Guests (no user id) get the first candidate, and nothing is stored.

    The check-then-assign sequence takes no locks: two concurrent first
    requests by the same user may both pick a random candidate, and the
    progress upsert keeps whichever is written last.

"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Sequence,
)
from dataclasses import dataclass, field
from datetime import date
import logging
import random

from db.protocols import (
    DatabaseBackendProtocol,
    GameEntityProtocol,
    JsonDict,
    ProgressEntityProtocol,
    SubmissionEntityProtocol,
)
from gametypes import (
    ASSIGNED_CATEGORIES,
    ASSIGNED_CROSSWORD_INDEX,
    ASSIGNED_SOLUTION,
    ASSIGNED_VERSE,
    ASSIGNED_WHO_AM_I,
    ASSIGNED_WORD,
    ASSIGNED_WORD_SEARCH_INDEX,
    CONNECTIONS,
    CONNECTIONS_GROUP_COUNT,
    CROSSWORD,
    NO_SOLUTION,
    SOURCE_GUEST,
    SOURCE_NONE,
    SOURCE_PROGRESS,
    SOURCE_RANDOM,
    SOURCE_SUBMISSION,
    VERSE_SCRAMBLE,
    WHO_AM_I,
    WORD_SEARCH,
    WORDLE,
    WORDLE_ADVANCED,
    WORDLE_BANK,
)


class Assignment(NamedTuple):
    """A variant selected for a (user, game) pair, and where it came from"""

    value: Any
    source: str


@dataclass
class ResolvedGame:
    """A game with exactly one variant selected. Only the fields
    emitted by to_dict() are ever sent to clients."""

    id: str
    challenge_id: str
    date: date
    type: str
    data: JsonDict
    assignment: Any = None
    source: str = SOURCE_NONE
    kind: Optional["VariantKind"] = field(default=None, repr=False)

    @property
    def client_type(self) -> str:
        # Advanced Wordle plays exactly like a plain Wordle on the client
        return WORDLE if self.type == WORDLE_ADVANCED else self.type

    def to_dict(self) -> JsonDict:
        return {
            "id": self.id,
            "challengeId": self.challenge_id,
            "date": self.date.isoformat(),
            "type": self.client_type,
            "data": self.data,
        }


# =============================================================================
# Variant kinds
# =============================================================================


class VariantKind:
    """How one shape of multi-candidate game data is resolved.

    Subclasses define where the candidates live, how a variant is read
    back from stored submission and progress blobs, how one is picked,
    and how the client payload is built from it.
    """

    # Progress record field holding the assignment
    field: str = ""
    # Key in the game data holding the candidate list
    pool_key: str = ""

    def candidates(self, data: Mapping[str, Any], word_bank: Sequence[str]) -> List[Any]:
        pool = data.get(self.pool_key)
        return list(pool) if isinstance(pool, list) else []

    def from_submission(
        self, sd: Mapping[str, Any], candidates: Sequence[Any]
    ) -> Optional[Any]:
        return self.validate(sd.get(self.field), candidates)

    def from_progress(
        self, state: Mapping[str, Any], candidates: Sequence[Any]
    ) -> Optional[Any]:
        return self.validate(state.get(self.field), candidates)

    def validate(self, value: Any, candidates: Sequence[Any]) -> Optional[Any]:
        """Return a stored value if it is usable, else None"""
        return value if value else None

    def pick_random(self, candidates: Sequence[Any]) -> Any:
        return random.choice(candidates)

    def pick_guest(self, candidates: Sequence[Any]) -> Any:
        return candidates[0]

    def placeholder(self) -> Any:
        return NO_SOLUTION

    def build(
        self, data: Mapping[str, Any], value: Any, candidates: Sequence[Any]
    ) -> JsonDict:
        """The client payload: the game data without the candidate
        list, with the selected variant filled in"""
        raise NotImplementedError

    def stamp(self, value: Any) -> JsonDict:
        """Fields recording the variant in submission data"""
        return {self.field: value}

    def _without_pool(self, data: Mapping[str, Any]) -> JsonDict:
        return {k: v for k, v in data.items() if k != self.pool_key}


class WordVariant(VariantKind):
    """Wordle family: one solution word out of a list or a word bank"""

    field = ASSIGNED_WORD
    pool_key = "solutions"

    def __init__(self, use_word_bank: bool = False) -> None:
        self._use_word_bank = use_word_bank

    def candidates(self, data: Mapping[str, Any], word_bank: Sequence[str]) -> List[Any]:
        words = [w for w in super().candidates(data, word_bank) if isinstance(w, str) and w]
        if not words and self._use_word_bank:
            words = [w for w in word_bank if isinstance(w, str) and w]
        return words

    def from_submission(
        self, sd: Mapping[str, Any], candidates: Sequence[Any]
    ) -> Optional[Any]:
        return self.validate(sd.get("solution") or sd.get(ASSIGNED_WORD), candidates)

    def validate(self, value: Any, candidates: Sequence[Any]) -> Optional[Any]:
        if isinstance(value, str) and value and value != NO_SOLUTION:
            return value
        return None

    def build(
        self, data: Mapping[str, Any], value: Any, candidates: Sequence[Any]
    ) -> JsonDict:
        result = self._without_pool(data)
        result["solution"] = value
        return result

    def stamp(self, value: Any) -> JsonDict:
        return {"solution": value}


class WhoAmIVariant(VariantKind):
    """Who Am I: one {answer, hint} pair out of a list"""

    field = ASSIGNED_WHO_AM_I
    pool_key = "solutions"

    def candidates(self, data: Mapping[str, Any], word_bank: Sequence[str]) -> List[Any]:
        return [
            {"answer": c["answer"], "hint": c.get("hint", "")}
            for c in super().candidates(data, word_bank)
            if isinstance(c, Mapping) and c.get("answer")
        ]

    def from_submission(
        self, sd: Mapping[str, Any], candidates: Sequence[Any]
    ) -> Optional[Any]:
        found = self.validate(sd.get(ASSIGNED_WHO_AM_I), candidates)
        if found is None and isinstance(answer := sd.get("answer"), str) and answer:
            found = self.validate({"answer": answer}, candidates)
        return found

    def from_progress(
        self, state: Mapping[str, Any], candidates: Sequence[Any]
    ) -> Optional[Any]:
        # Older progress records use the generic field name
        return self.validate(
            state.get(ASSIGNED_WHO_AM_I) or state.get(ASSIGNED_SOLUTION), candidates
        )

    def validate(self, value: Any, candidates: Sequence[Any]) -> Optional[Any]:
        if isinstance(value, str) and value:
            value = {"answer": value}
        if not isinstance(value, Mapping) or not value.get("answer"):
            return None
        if value["answer"] == NO_SOLUTION:
            return None
        if "hint" not in value:
            # Recover the hint from the candidate with the same answer
            for c in candidates:
                if c["answer"] == value["answer"]:
                    return dict(c)
        return {"answer": value["answer"], "hint": value.get("hint", "")}

    def placeholder(self) -> Any:
        return {"answer": NO_SOLUTION, "hint": ""}

    def build(
        self, data: Mapping[str, Any], value: Any, candidates: Sequence[Any]
    ) -> JsonDict:
        result = self._without_pool(data)
        result["answer"] = value["answer"]
        result["hint"] = value.get("hint", "")
        return result


class CategoryVariant(VariantKind):
    """Connections: four categories out of a larger pool.

    The assignment is the list of selected category names. Names that do
    not match exactly four known categories (the pool may have been
    edited after the assignment was made) fall back to the first four.
    """

    field = ASSIGNED_CATEGORIES
    pool_key = "categories"

    def candidates(self, data: Mapping[str, Any], word_bank: Sequence[str]) -> List[Any]:
        return [
            c
            for c in super().candidates(data, word_bank)
            if isinstance(c, Mapping) and isinstance(c.get("name"), str)
        ]

    def from_submission(
        self, sd: Mapping[str, Any], candidates: Sequence[Any]
    ) -> Optional[Any]:
        return self.validate(
            sd.get(ASSIGNED_CATEGORIES) or sd.get("categories"), candidates
        )

    def validate(self, value: Any, candidates: Sequence[Any]) -> Optional[Any]:
        if not isinstance(value, list) or not value:
            return None
        names: List[str] = []
        for item in value:
            if isinstance(item, Mapping):
                item = item.get("name")
            if isinstance(item, str):
                names.append(item)
        known = {c["name"] for c in candidates}
        if len(names) == CONNECTIONS_GROUP_COUNT and set(names) <= known:
            return names
        return self.pick_guest(candidates)

    def pick_random(self, candidates: Sequence[Any]) -> Any:
        pool = list(candidates)
        random.shuffle(pool)
        return [c["name"] for c in pool[:CONNECTIONS_GROUP_COUNT]]

    def pick_guest(self, candidates: Sequence[Any]) -> Any:
        return [c["name"] for c in candidates[:CONNECTIONS_GROUP_COUNT]]

    def build(
        self, data: Mapping[str, Any], value: Any, candidates: Sequence[Any]
    ) -> JsonDict:
        by_name = {c["name"]: c for c in candidates}
        selected = [by_name[name] for name in value if name in by_name]
        result = dict(data)
        result["categories"] = selected
        result["words"] = [w for c in selected for w in (c.get("words") or [])]
        return result


class VerseVariant(VariantKind):
    """Verse Scramble: one {verse, reference} out of a list"""

    field = ASSIGNED_VERSE
    pool_key = "verses"

    def candidates(self, data: Mapping[str, Any], word_bank: Sequence[str]) -> List[Any]:
        return [
            {"verse": v["verse"], "reference": v.get("reference", "")}
            for v in super().candidates(data, word_bank)
            if isinstance(v, Mapping) and v.get("verse")
        ]

    def validate(self, value: Any, candidates: Sequence[Any]) -> Optional[Any]:
        if isinstance(value, Mapping) and value.get("verse"):
            if value["verse"] != NO_SOLUTION:
                return {"verse": value["verse"], "reference": value.get("reference", "")}
        return None

    def placeholder(self) -> Any:
        return {"verse": NO_SOLUTION, "reference": ""}

    def build(
        self, data: Mapping[str, Any], value: Any, candidates: Sequence[Any]
    ) -> JsonDict:
        result = self._without_pool(data)
        result["verse"] = value["verse"]
        result["reference"] = value.get("reference", "")
        return result


class PuzzleIndexVariant(VariantKind):
    """Word search and crossword: one puzzle out of a list, by index"""

    pool_key = "puzzles"

    def __init__(self, field: str) -> None:
        self.field = field

    def validate(self, value: Any, candidates: Sequence[Any]) -> Optional[Any]:
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value if 0 <= value < len(candidates) else None

    def pick_random(self, candidates: Sequence[Any]) -> Any:
        return random.randrange(len(candidates))

    def pick_guest(self, candidates: Sequence[Any]) -> Any:
        return 0

    def build(
        self, data: Mapping[str, Any], value: Any, candidates: Sequence[Any]
    ) -> JsonDict:
        result = self._without_pool(data)
        if isinstance(value, int) and 0 <= value < len(candidates):
            puzzle = candidates[value]
            if isinstance(puzzle, Mapping):
                result.update(puzzle)
        return result


def variant_kind(game_type: str, data: Mapping[str, Any]) -> Optional[VariantKind]:
    """Return the variant kind of a game, or None if its data is a
    single concrete puzzle that passes through unchanged"""
    if game_type in (WORDLE_ADVANCED, WORDLE_BANK):
        return WordVariant(use_word_bank=game_type == WORDLE_BANK)
    if game_type == WORDLE and data.get("solutions"):
        return WordVariant()
    if game_type == WHO_AM_I and "solutions" in data:
        return WhoAmIVariant()
    if game_type == CONNECTIONS:
        categories = data.get("categories")
        if isinstance(categories, list) and len(categories) > CONNECTIONS_GROUP_COUNT:
            return CategoryVariant()
        return None
    if game_type == VERSE_SCRAMBLE and "verses" in data:
        return VerseVariant()
    if game_type == WORD_SEARCH and "puzzles" in data:
        return PuzzleIndexVariant(ASSIGNED_WORD_SEARCH_INDEX)
    if game_type == CROSSWORD and "puzzles" in data:
        return PuzzleIndexVariant(ASSIGNED_CROSSWORD_INDEX)
    return None


# =============================================================================
# Resolution strategies
# =============================================================================


@dataclass
class Resolution:
    """What the strategies see of one resolve() call. Stored records
    are loaded on first use and cached for the later strategies."""

    db: DatabaseBackendProtocol
    game: GameEntityProtocol
    user_id: Optional[str]
    kind: VariantKind
    candidates: List[Any]
    _submission: Any = field(default=None, repr=False)
    _progress: Any = field(default=None, repr=False)
    _loaded: Dict[str, bool] = field(default_factory=dict, repr=False)

    @property
    def submission(self) -> Optional[SubmissionEntityProtocol]:
        if self.user_id is None:
            return None
        if not self._loaded.get("submission"):
            self._submission = self.db.submissions.get(self.user_id, self.game.key_id)
            self._loaded["submission"] = True
        return self._submission

    @property
    def progress(self) -> Optional[ProgressEntityProtocol]:
        if self.user_id is None:
            return None
        if not self._loaded.get("progress"):
            self._progress = self.db.progress.get(self.user_id, self.game.key_id)
            self._loaded["progress"] = True
        return self._progress


Strategy = Callable[[Resolution], Optional[Assignment]]


def from_submission(r: Resolution) -> Optional[Assignment]:
    """A user who already played sees exactly the puzzle they solved"""
    if (sub := r.submission) is None:
        return None
    value = r.kind.from_submission(sub.submission_data, r.candidates)
    return None if value is None else Assignment(value, SOURCE_SUBMISSION)


def from_progress(r: Resolution) -> Optional[Assignment]:
    """Reuse an assignment cached in the progress record"""
    if (progress := r.progress) is None:
        return None
    value = r.kind.from_progress(progress.game_state, r.candidates)
    return None if value is None else Assignment(value, SOURCE_PROGRESS)


def fresh_random(r: Resolution) -> Optional[Assignment]:
    """Pick a candidate uniformly at random; the caller persists it"""
    if not r.candidates:
        return None
    return Assignment(r.kind.pick_random(r.candidates), SOURCE_RANDOM)


def guest(r: Resolution) -> Optional[Assignment]:
    """Deterministic and side-effect free"""
    if not r.candidates:
        return None
    return Assignment(r.kind.pick_guest(r.candidates), SOURCE_GUEST)


USER_STRATEGIES: Sequence[Strategy] = (from_submission, from_progress, fresh_random)
GUEST_STRATEGIES: Sequence[Strategy] = (guest,)


def persist_assignment(r: Resolution, value: Any) -> None:
    """Merge the assignment into the user's progress record, keeping
    every other field of the stored state"""
    assert r.user_id is not None
    existing = r.progress
    state: JsonDict = dict(existing.game_state) if existing is not None else {}
    state[r.kind.field] = value
    r.db.progress.upsert(r.user_id, r.game.key_id, state)


def _word_bank(db: DatabaseBackendProtocol, game: GameEntityProtocol) -> List[str]:
    if game.type != WORDLE_BANK:
        return []
    challenge = db.challenges.get_by_id(game.challenge_id)
    return challenge.word_bank if challenge is not None else []


def resolve(
    db: DatabaseBackendProtocol,
    game: GameEntityProtocol,
    user_id: Optional[str] = None,
    *,
    persist: bool = True,
) -> ResolvedGame:
    """Return the client-safe game payload for the given user (or guest,
    if user_id is None). A fresh random assignment is stored in the
    user's progress record unless persist is False."""
    data: JsonDict = dict(game.data or {})
    kind = variant_kind(game.type, data)
    if kind is None:
        return ResolvedGame(
            id=game.key_id,
            challenge_id=game.challenge_id,
            date=game.date,
            type=game.type,
            data=data,
        )

    r = Resolution(
        db=db,
        game=game,
        user_id=user_id,
        kind=kind,
        candidates=kind.candidates(data, _word_bank(db, game)),
    )
    strategies = GUEST_STRATEGIES if user_id is None else USER_STRATEGIES
    assignment: Optional[Assignment] = None
    for strategy in strategies:
        if (assignment := strategy(r)) is not None:
            break

    if assignment is None:
        logging.warning(
            f"No candidates for game {game.key_id} of type {game.type}; "
            f"emitting placeholder"
        )
        assignment = Assignment(kind.placeholder(), SOURCE_NONE)
    elif assignment.source == SOURCE_RANDOM and persist:
        persist_assignment(r, assignment.value)
        logging.info(
            f"Assigned {kind.field} for user {user_id} in game {game.key_id}"
        )

    return ResolvedGame(
        id=game.key_id,
        challenge_id=game.challenge_id,
        date=game.date,
        type=game.type,
        data=kind.build(data, assignment.value, r.candidates),
        assignment=assignment.value,
        source=assignment.source,
        kind=kind,
    )


def variant_stamp(resolved: ResolvedGame) -> JsonDict:
    """Fields that record the resolved variant in submission data.
    Placeholders are not recorded."""
    if resolved.kind is None or resolved.source == SOURCE_NONE:
        return {}
    return resolved.kind.stamp(resolved.assignment)
