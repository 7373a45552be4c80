"""
Clock and id sources for the database layer.

Application code asks get_current_time() for the current moment and
generate_id() for new entity keys. Both can be pinned: freeze_time()
fixes the clock, which places a submission or a maintenance run on a
given day of a challenge, and sequential_ids() makes generated keys
predictable.
"""

from __future__ import annotations

from typing import (
    Callable,
    Dict,
    Iterator,
)
from datetime import datetime, timezone
from contextlib import contextmanager
import uuid

# UTC timezone constant
UTC = timezone.utc

# Active replacements for the clock ("time") and the id source ("id")
_overrides: Dict[str, Callable[[], object]] = {}


def get_current_time() -> datetime:
    """Return the current time as a timezone-aware UTC datetime"""
    source = _overrides.get("time")
    if source is None:
        return datetime.now(UTC)
    return source()  # type: ignore[return-value]


def generate_id() -> str:
    """Return a new unique entity id (a UUID string unless overridden)"""
    source = _overrides.get("id")
    if source is None:
        return str(uuid.uuid4())
    return str(source())


@contextmanager
def _override(name: str, source: Callable[[], object]) -> Iterator[None]:
    previous = _overrides.get(name)
    _overrides[name] = source
    try:
        yield
    finally:
        if previous is None:
            del _overrides[name]
        else:
            _overrides[name] = previous


@contextmanager
def freeze_time(frozen_time: datetime) -> Iterator[None]:
    """Pin get_current_time() to the given moment.

    Example:
        # Noon in New York, two days after a game dated March 10
        with freeze_time(datetime(2025, 3, 12, 16, 0, tzinfo=UTC)):
            result = logic.submit(db, "alice", game_id, 95, 2)
            assert result["score"] == 24
    """
    with _override("time", lambda: frozen_time):
        yield


@contextmanager
def sequential_ids(prefix: str = "test") -> Iterator[None]:
    """Generate ids "<prefix>-0001", "<prefix>-0002", ... instead of UUIDs"""
    counter = 0

    def next_id() -> str:
        nonlocal counter
        counter += 1
        return f"{prefix}-{counter:04d}"

    with _override("id", next_id):
        yield
