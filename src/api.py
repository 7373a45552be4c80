"""

    Server API for the daily challenge server

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module contains the API entry points into the daily challenge
    server. These APIs are used by the web and app clients.

    The caller identifies itself with the X-User-Id header. Requests
    without it are served as a guest, who can view games but not
    submit or save progress.

"""

from __future__ import annotations
from functools import wraps

from typing import (
    Any,
    Sequence,
)

import logging

from flask import Blueprint, request
from sqlalchemy.exc import SQLAlchemyError

from config import RouteType, ResponseType
from basics import (
    RouteFunc,
    RequestData,
    check_user,
    current_user_id,
    get_db,
    jsonify,
)
from errors import ChallengeError, ValidationError
import logic


# Only allow POST requests to the API endpoints, unless otherwise stated
_ONLY_POST: Sequence[str] = ["POST"]
_ONLY_GET: Sequence[str] = ["GET"]

# Register the Flask blueprint for the APIs
api = api_blueprint = Blueprint("api", __name__)


def api_route(route: str, methods: Sequence[str] = _ONLY_POST) -> RouteFunc:
    """Decorator for API routes; checks that the name of the route function ends with '_api'"""

    def decorator(f: RouteType) -> RouteType:

        assert f.__name__.endswith("_api"), f"Name of API function '{f.__name__}' must end with '_api'"

        @api.route(route, methods=methods)
        @wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> ResponseType:
            return f(*args, **kwargs)

        return wrapper

    return decorator


@api.app_errorhandler(ChallengeError)
def challenge_error(e: ChallengeError) -> ResponseType:
    """Report an error to the client, discarding any pending writes"""
    get_db().rollback()
    if e.status >= 500:
        logging.error(f"{request.method} {request.path} failed: {e.message}")
    return jsonify(error=e.message), e.status


@api.app_errorhandler(SQLAlchemyError)
def storage_error(e: SQLAlchemyError) -> ResponseType:
    """Log a storage failure with its context; the client only
    learns that something went wrong"""
    get_db().rollback()
    logging.error(
        f"Storage failure in {request.method} {request.path} "
        f"(user {current_user_id() or 'guest'}): {e}"
    )
    return jsonify(error="Internal server error"), 500


# =============================================================================
# Challenges and games
# =============================================================================


@api_route("/challenge", methods=_ONLY_GET)
def challenge_api() -> ResponseType:
    """Return the challenge that is running today, or null"""
    return jsonify(logic.active_challenge(get_db()))


@api_route("/challenge/<challenge_id>/daily", methods=_ONLY_GET)
def daily_api(challenge_id: str) -> ResponseType:
    """Return today's game of a challenge, resolved for the caller,
    or null if the challenge has no game today"""
    resolved = logic.daily_game(get_db(), challenge_id, current_user_id())
    return jsonify(None if resolved is None else resolved.to_dict())


@api_route("/games/<game_id>", methods=_ONLY_GET)
def game_api(game_id: str) -> ResponseType:
    """Return a single game, resolved for the caller"""
    resolved = logic.game_for_user(get_db(), game_id, current_user_id())
    return jsonify(resolved.to_dict())


@api_route("/challenge/<challenge_id>/games", methods=_ONLY_GET)
def challenge_games_api(challenge_id: str) -> ResponseType:
    """Return the games of a challenge up to and including today"""
    games = logic.challenge_games(get_db(), challenge_id, current_user_id())
    return jsonify([g.to_dict() for g in games])


@api_route("/challenge/<challenge_id>/leaderboard", methods=_ONLY_GET)
def leaderboard_api(challenge_id: str) -> ResponseType:
    return jsonify(logic.leaderboard(get_db(), challenge_id))


# =============================================================================
# Submissions
# =============================================================================


@api_route("/submit")
def submit_api() -> ResponseType:
    """Score and store a finished game"""
    rq = RequestData(request)
    user_id = check_user(rq.get("userId"))
    result = logic.submit(
        get_db(),
        user_id,
        rq.get("gameId", ""),
        time_taken=rq.get("timeTaken"),
        mistakes=rq.get("mistakes"),
        submission_data=rq.get("submissionData"),
        started_at=rq.get("startedAt"),
    )
    return jsonify(result)


@api_route("/submissions/user/<user_id>/challenge/<challenge_id>", methods=_ONLY_GET)
def user_submissions_api(user_id: str, challenge_id: str) -> ResponseType:
    check_user(user_id)
    return jsonify(logic.user_submissions(get_db(), user_id, challenge_id))


@api_route("/submissions/user/<user_id>/game/<game_id>", methods=_ONLY_GET)
def user_game_submission_api(user_id: str, game_id: str) -> ResponseType:
    check_user(user_id)
    return jsonify(logic.user_game_submission(get_db(), user_id, game_id))


# =============================================================================
# Progress
# =============================================================================


@api_route(
    "/game-state/user/<user_id>/game/<game_id>", methods=["GET", "POST", "DELETE"]
)
def game_state_api(user_id: str, game_id: str) -> ResponseType:
    """Load, save (merging with the stored state) or delete the
    in-progress state of a game"""
    check_user(user_id)
    db = get_db()
    if request.method == "GET":
        return jsonify(logic.get_progress(db, user_id, game_id))
    if request.method == "DELETE":
        return jsonify(deleted=logic.delete_progress(db, user_id, game_id))
    rq = RequestData(request)
    return jsonify(logic.save_progress(db, user_id, game_id, rq.get("gameState")))


# =============================================================================
# Accounts and devices
# =============================================================================


@api_route("/delete_account")
def delete_account_api() -> ResponseType:
    """Delete the account of the current user, along with everything
    stored about them"""
    rq = RequestData(request)
    user_id = check_user(rq.get("userId") or current_user_id())
    logic.delete_account(get_db(), user_id)
    return jsonify(ok=True)


@api_route("/push/subscribe")
def push_subscribe_api() -> ResponseType:
    """Register a device token for push notifications to the current user"""
    rq = RequestData(request)
    user_id = check_user(rq.get("userId") or current_user_id())
    token = rq.get("token", "")
    if not token or not isinstance(token, str):
        raise ValidationError("Missing token")
    platform = rq.get("platform") or ""
    get_db().push_subscriptions.subscribe(user_id, token, str(platform))
    return jsonify(ok=True)


@api_route("/push/unsubscribe")
def push_unsubscribe_api() -> ResponseType:
    rq = RequestData(request)
    check_user(rq.get("userId") or current_user_id())
    token = rq.get("token", "")
    if not token or not isinstance(token, str):
        raise ValidationError("Missing token")
    return jsonify(ok=get_db().push_subscriptions.unsubscribe(token))
