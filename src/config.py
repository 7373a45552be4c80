"""

    Configuration data

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module reads a number of configuration parameters
    from environment variables.

"""

from __future__ import annotations

from typing import (
    List,
    Literal,
    Optional,
    TypedDict,
    Union,
    Tuple,
    Callable,
)
import os
from zoneinfo import ZoneInfo

from werkzeug.wrappers import Response as WerkzeugResponse
from flask.wrappers import Response


# Universal type definitions
ResponseType = Union[
    str, bytes, Response, WerkzeugResponse, Tuple[str, int], Tuple[Response, int]
]
RouteType = Callable[..., ResponseType]


class FlaskConfig(TypedDict):
    """The Flask configuration dictionary"""

    DEBUG: bool
    SESSION_COOKIE_SECURE: bool
    SESSION_COOKIE_HTTPONLY: bool
    SESSION_COOKIE_SAMESITE: Literal["Strict", "Lax", "None"]
    TESTING: bool


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes")


# Are we running in a local development environment or on a GAE server?
running_local: bool = os.environ.get("SERVER_SOFTWARE", "").startswith("Development")
# Set SERVER_HOST to 0.0.0.0 to accept HTTP connections from the outside
host: str = os.environ.get("SERVER_HOST", "127.0.0.1")
port: str = os.environ.get("SERVER_PORT", "8080")

# App Engine (and Firebase) project id
PROJECT_ID = os.environ.get("PROJECT_ID", "")

# Secret key for the Flask session cookie
FLASK_SECRET_KEY: Optional[str] = os.environ.get("FLASK_SECRET_KEY")

# Origins allowed to call the API from a browser during local development
CORS_ORIGINS: List[str] = [
    o.strip()
    for o in os.environ.get("CORS_ORIGINS", "http://127.0.0.1:5173").split(",")
    if o.strip()
]

# All calendar-day arithmetic (game dates, late penalties, the daily job)
# is anchored to this time zone, never to UTC day boundaries
CHALLENGE_TIMEZONE = ZoneInfo(os.environ.get("CHALLENGE_TIMEZONE", "America/New_York"))

# Submissions are accepted through this many days after the game date;
# the last accepted day scores zero
SUBMISSION_GRACE_DAYS: int = int(os.environ.get("SUBMISSION_GRACE_DAYS", "5"))

# Fraction of the base score lost per day of lateness
LATE_PENALTY_PER_DAY: float = float(os.environ.get("LATE_PENALTY_PER_DAY", "0.20"))

# Type of the placeholder game created by the daily job when none exists
DEFAULT_GAME_TYPE = "wordle_bank"

# Should push notifications actually be sent via Firebase Cloud Messaging?
PUSH_ENABLED: bool = _env_bool("PUSH_ENABLED", default=not running_local)

# Title and body of the daily reminder push notification
REMINDER_TITLE = os.environ.get("REMINDER_TITLE", "Today's challenge is waiting")
REMINDER_BODY = os.environ.get(
    "REMINDER_BODY", "You haven't played today's {game} yet. Keep your streak going!"
)
