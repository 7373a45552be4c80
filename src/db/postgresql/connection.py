"""
Engine creation for the SQL backend.

PostgreSQL is the production database. The same models also run on
SQLite, which the test suites and local development servers use when
DATABASE_URL points at a file.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from ..config import DatabaseConfig, get_config


def _sqlite_engine(url: str, echo: bool) -> Engine:
    engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    # pysqlite normally issues BEGIN itself, which breaks SAVEPOINT;
    # take over transaction control and enforce foreign keys
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    return engine


def _postgresql_engine(url: str, echo: bool, config: DatabaseConfig) -> Engine:
    engine = create_engine(
        url,
        echo=echo,
        **config.pool_options(),
        # Timestamps are stored and compared in UTC
        connect_args={"options": "-c timezone=utc"},
    )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("SET TIME ZONE 'UTC'")
        cursor.close()

    return engine


def create_db_engine(
    database_url: Optional[str] = None, echo: Optional[bool] = None
) -> Engine:
    """Create a SQLAlchemy engine for the configured (or given) database URL.
    Pool settings and SQL echo default to the DatabaseConfig values."""
    config = get_config()
    url = config.get_database_url(database_url)
    echo_sql = config.echo_sql if echo is None else echo
    if config.is_sqlite(url):
        return _sqlite_engine(url, echo_sql)
    return _postgresql_engine(url, echo_sql, config)


class DatabaseSession:
    """Owns an engine and the session factory bound to it"""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        # Entities stay readable after the request commits
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def session_factory(self) -> "sessionmaker[Session]":
        return self._session_factory

    def close(self) -> None:
        """Dispose of the engine and its pooled connections"""
        self._engine.dispose()
