"""

    Basic utility functions and classes

    Copyright (C) 2025 Miðeind ehf.

    The Creative Commons Attribution-NonCommercial 4.0
    International Public License (CC-BY-NC 4.0) applies to this software.


    This module defines a number of basic entities that are used and shared
    by the main.py and api.py modules: JSON replies, request parameter
    access, the identity of the caller, and access to the services
    (database session manager and push notifier) that the application
    was constructed with.

"""

from __future__ import annotations

from typing import (
    Optional,
    Dict,
    Any,
    TypeVar,
    Callable,
    cast,
    overload,
)

from flask import (
    current_app,
    jsonify as flask_jsonify,
    request,
)
from flask.wrappers import Request, Response

from config import RouteType
from db.protocols import DatabaseBackendProtocol
from errors import Forbidden
from firebase import NotifierProtocol


# Generic placeholder type
T = TypeVar("T")

# A Flask route function decorator
RouteFunc = Callable[[RouteType], RouteType]

# Keys under which the services are kept in app.extensions
SESSION_MANAGER_KEY = "session_manager"
NOTIFIER_KEY = "push_notifier"

# Request header carrying the id of the calling user
USER_ID_HEADER = "X-User-Id"


# Type annotation wrapper for flask.jsonify()
def jsonify(*args: Any, **kwargs: Any) -> Response:
    response = flask_jsonify(*args, **kwargs)
    response.headers["Content-Type"] = "application/json; charset=UTF-8"
    return response


def get_db() -> DatabaseBackendProtocol:
    """Return the request-scoped database backend of the current app"""
    return current_app.extensions[SESSION_MANAGER_KEY].get_backend()


def get_notifier() -> NotifierProtocol:
    """Return the push notifier of the current app"""
    return current_app.extensions[NOTIFIER_KEY]


def current_user_id() -> Optional[str]:
    """Return the id of the calling user, or None for a guest"""
    return request.headers.get(USER_ID_HEADER, "").strip() or None


def check_user(user_id: Optional[str]) -> str:
    """Return the calling user's id, checking that it matches a user id
    named in the path or body of the request. A guest may not act on
    behalf of a user, and a user may not act on behalf of another."""
    cuid = current_user_id()
    if not user_id or cuid != user_id:
        raise Forbidden("Not allowed to act on behalf of this user")
    return cuid


class RequestData:
    """Wraps the Flask request object to allow error-checked retrieval of query
    parameters either from JSON or from form-encoded POST data"""

    def __init__(self, rq: Request, *, use_args: bool = False) -> None:
        # If JSON data is present, assume this is a JSON request
        self.q: Dict[str, Any] = cast(Any, rq).get_json(silent=True)
        if not isinstance(self.q, dict):
            self.q = {}
        if not self.q:
            # No JSON data: assume this is a form-encoded request
            self.q = cast(Any, rq.form)
            if not self.q:
                # As a last resort, and if permitted, fall back to URL arguments
                if use_args:
                    self.q = cast(Any, rq.args)
                else:
                    self.q = dict()

    def __repr__(self) -> str:
        return f"<RequestData {self.q!r}>"

    @overload
    def get(self, key: str) -> Any: ...

    @overload
    def get(self, key: str, default: T) -> T: ...

    def get(self, key: str, default: Any = None) -> Any:
        """Obtain an arbitrary data item from the request"""
        return self.q.get(key, default)
