"""

    Game types and payload shapes

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module names the closed set of daily game types and describes
    the JSON shapes of their data blobs, of the server-assigned variant
    fields kept in progress records, and of the variant stamps written
    into submission data.

    The blobs themselves are stored and passed around as plain dicts so
    that fields unknown to the server survive every merge; the TypedDicts
    below document the fields the server reads or writes.

"""

from __future__ import annotations

from typing import (
    Dict,
    FrozenSet,
    List,
    Literal,
    TypedDict,
)


GameType = Literal[
    "wordle",
    "wordle_advanced",
    "wordle_bank",
    "connections",
    "crossword",
    "match_the_word",
    "verse_scramble",
    "who_am_i",
    "word_search",
]

WORDLE = "wordle"
WORDLE_ADVANCED = "wordle_advanced"
WORDLE_BANK = "wordle_bank"
CONNECTIONS = "connections"
CROSSWORD = "crossword"
MATCH_THE_WORD = "match_the_word"
VERSE_SCRAMBLE = "verse_scramble"
WHO_AM_I = "who_am_i"
WORD_SEARCH = "word_search"

GAME_TYPES: FrozenSet[str] = frozenset(
    (
        WORDLE,
        WORDLE_ADVANCED,
        WORDLE_BANK,
        CONNECTIONS,
        CROSSWORD,
        MATCH_THE_WORD,
        VERSE_SCRAMBLE,
        WHO_AM_I,
        WORD_SEARCH,
    )
)

WORDLE_FAMILY: FrozenSet[str] = frozenset((WORDLE, WORDLE_ADVANCED, WORDLE_BANK))

# Connections games offer a choice only when the pool exceeds this
CONNECTIONS_GROUP_COUNT = 4

# Placeholder answer emitted when a multi-candidate game has no candidates
NO_SOLUTION = "NO_SOLUTION"

# Strategies that can supply an assignment, in priority order
SOURCE_SUBMISSION = "submission"
SOURCE_PROGRESS = "progress"
SOURCE_RANDOM = "random"
SOURCE_GUEST = "guest"
SOURCE_NONE = "none"


# Progress record fields owned by the variant resolver
ASSIGNED_WORD = "assignedWord"
ASSIGNED_SOLUTION = "assignedSolution"  # Legacy name for who_am_i
ASSIGNED_WHO_AM_I = "assignedWhoAmI"
ASSIGNED_CATEGORIES = "assignedCategories"
ASSIGNED_VERSE = "assignedVerse"
ASSIGNED_WORD_SEARCH_INDEX = "assignedWordSearchIndex"
ASSIGNED_CROSSWORD_INDEX = "assignedCrosswordIndex"
ASSIGNED_PAIRS = "assignedPairs"

# Never returned to clients from the progress endpoints, and
# never overwritten by a client-side progress save
ASSIGNMENT_FIELDS: FrozenSet[str] = frozenset(
    (
        ASSIGNED_WORD,
        ASSIGNED_SOLUTION,
        ASSIGNED_WHO_AM_I,
        ASSIGNED_CATEGORIES,
        ASSIGNED_VERSE,
        ASSIGNED_WORD_SEARCH_INDEX,
        ASSIGNED_CROSSWORD_INDEX,
        ASSIGNED_PAIRS,
    )
)


class WordleData(TypedDict, total=False):
    solution: str
    solutions: List[str]
    wordLength: int


class ConnectionsCategory(TypedDict):
    name: str
    words: List[str]


class ConnectionsData(TypedDict, total=False):
    words: List[str]
    categories: List[ConnectionsCategory]


class Clue(TypedDict, total=False):
    number: int
    clue: str
    answer: str
    row: int
    col: int
    direction: Literal["across", "down"]
    length: int


class CrosswordPuzzle(TypedDict, total=False):
    rows: int
    cols: int
    acrossClues: List[Clue]
    downClues: List[Clue]


class CrosswordData(CrosswordPuzzle, total=False):
    puzzles: List[CrosswordPuzzle]


class MatchPair(TypedDict):
    word: str
    match: str


class MatchTheWordData(TypedDict, total=False):
    pairs: List[MatchPair]


class Verse(TypedDict):
    verse: str
    reference: str


class VerseScrambleData(TypedDict, total=False):
    verse: str
    reference: str
    verses: List[Verse]


class WhoAmI(TypedDict, total=False):
    answer: str
    hint: str


class WhoAmIData(WhoAmI, total=False):
    solutions: List[WhoAmI]


class WordSearchPuzzle(TypedDict):
    grid: List[List[str]]
    words: List[str]


class WordSearchData(TypedDict, total=False):
    grid: List[List[str]]
    words: List[str]
    puzzles: List[WordSearchPuzzle]


class SubmissionDict(TypedDict):
    """A stored submission as returned to clients"""

    id: str
    userId: str
    gameId: str
    challengeId: str
    startedAt: str
    completedAt: str
    timeTaken: int
    mistakes: int
    score: int
    submissionData: Dict[str, object]


class LeaderboardEntry(TypedDict):
    rank: int
    userId: str
    name: str
    totalScore: int
    gamesPlayed: int
