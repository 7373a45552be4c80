"""
Database abstraction layer for the daily challenge server.

This package provides a backend-agnostic interface (see protocols.py)
for the game catalog, progress, submission, user and push subscription
stores, with a SQLAlchemy implementation in the postgresql subpackage.

Request-Scoped Sessions:
    # In application startup (main.py):
    from db import SessionManager, db_wsgi_middleware
    manager = SessionManager(database_url="...")
    app.wsgi_app = db_wsgi_middleware(app.wsgi_app, manager)

    # In batch jobs and utilities:
    with manager.request_context() as db:
        game = db.games.get_by_id("game-123")
        # Changes committed at the end of the block
"""

from __future__ import annotations

from .session import (
    SessionManager,
    db_wsgi_middleware,
)

__all__ = [
    "SessionManager",
    "db_wsgi_middleware",
]
