"""

    Error taxonomy

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    Exceptions raised by the challenge logic and translated into
    HTTP replies by the API blueprint. The message of each exception
    is safe to show to clients.

"""

from __future__ import annotations


class ChallengeError(Exception):
    """Base class for errors that are reported to the client"""

    status: int = 500
    default_message = "Internal server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFound(ChallengeError):
    """A game, challenge or user does not exist"""

    status = 404
    default_message = "Not found"


class Forbidden(ChallengeError):
    """The submission window has elapsed, or the caller
    is acting on behalf of somebody else"""

    status = 403
    default_message = "Forbidden"


class ValidationError(ChallengeError):
    """A required request field is missing or malformed"""

    status = 400
    default_message = "Invalid request"


class Transient(ChallengeError):
    """Storage I/O failure"""

    status = 500
