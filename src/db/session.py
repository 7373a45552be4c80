"""
Request-scoped database session management.

The SessionManager owns the engine and session factory for the lifetime
of the application, and hands out one database backend per unit of
work: an API request, a scheduled task or a command line run.

Within a unit of work, repository writes are flushed but not committed.
The unit of work commits when it completes normally and rolls back if
it raises. Code that needs an all-or-nothing section inside a unit of
work (account deletion, one user's assignment in the maintenance job)
uses db.transaction(), which is a savepoint.

The manager is an ordinary object. The Flask app keeps the instance it
was built with in app.extensions, and the utilities under utils/
construct their own.
"""

from __future__ import annotations

import logging
from typing import Optional, Any, TYPE_CHECKING, Iterator
from contextlib import contextmanager
from threading import local

from .config import get_config
from .postgresql.connection import DatabaseSession, create_db_engine

if TYPE_CHECKING:
    from .protocols import DatabaseBackendProtocol

# Logger for this module
_log = logging.getLogger(__name__)


class SessionManager:
    """Owns the connection pool and the per-thread database backends.

    Usage:
        manager = SessionManager()

        with manager.request_context() as db:
            report = run_daily_maintenance(db)
            # Committed here, or rolled back if an exception escaped

        manager.close()
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        self._database_url = get_config().get_database_url(database_url)
        self._db_session: Optional[DatabaseSession] = DatabaseSession(
            create_db_engine(self._database_url)
        )
        # The backend of the unit of work running on each thread
        self._local = local()

    @property
    def database_url(self) -> str:
        return self._database_url

    def _session(self) -> DatabaseSession:
        if self._db_session is None:
            raise RuntimeError("SessionManager has been closed")
        return self._db_session

    def create_backend(self) -> "DatabaseBackendProtocol":
        """Create a new backend with its own session, not tied to
        the current thread. The caller commits and closes it."""
        from .postgresql import PostgreSQLBackend

        return PostgreSQLBackend(session_factory=self._session().session_factory)

    def get_backend(self) -> "DatabaseBackendProtocol":
        """Return the backend of the current thread's unit of work,
        creating it on first use"""
        backend: Optional["DatabaseBackendProtocol"] = getattr(
            self._local, "backend", None
        )
        if backend is None:
            backend = self.create_backend()
            self._local.backend = backend
        return backend

    def _release_backend(self) -> None:
        backend: Optional["DatabaseBackendProtocol"] = getattr(
            self._local, "backend", None
        )
        if backend is None:
            return
        self._local.backend = None
        try:
            backend.close()
        except Exception as e:
            _log.warning(f"Error closing backend: {e}")

    @contextmanager
    def request_context(self) -> Iterator["DatabaseBackendProtocol"]:
        """Run a unit of work: commit if the block completes, roll back
        if it raises, and release the session in either case"""
        backend = self.get_backend()
        try:
            yield backend
        except Exception:
            try:
                backend.rollback()
            except Exception as e:
                _log.warning(f"Error during rollback: {e}")
            self._release_backend()
            raise
        try:
            backend.commit()
        except Exception as e:
            _log.error(f"Error during commit: {e}")
            try:
                backend.rollback()
            except Exception as e2:
                _log.warning(f"Error during rollback: {e2}")
            raise
        finally:
            self._release_backend()

    def create_tables(self) -> None:
        """Create all database tables (initial setup and tests only)."""
        from .postgresql.models import Base

        Base.metadata.create_all(self._session().engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Tests only: this deletes all data!"""
        from .postgresql.models import Base

        Base.metadata.drop_all(self._session().engine)

    def close(self) -> None:
        """Release the connection pool."""
        self._release_backend()
        if self._db_session is not None:
            self._db_session.close()
            self._db_session = None


def db_wsgi_middleware(wsgi_app: Any, manager: SessionManager) -> Any:
    """Wrap a WSGI app so that each request runs as one unit of work
    of the given session manager"""

    def middleware(environ: Any, start_response: Any) -> Any:
        with manager.request_context():
            return wsgi_app(environ, start_response)

    return middleware
