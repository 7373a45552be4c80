"""
Database settings, read from the environment.

DATABASE_URL selects the database: a postgresql:// URL in production,
or a sqlite:/// file for local runs and the test suites. The DB_*
variables tune the PostgreSQL connection pool and SQL echo.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


@dataclass
class DatabaseConfig:

    database_url: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10
    # Seconds
    pool_timeout: int = 30
    pool_recycle: int = 1800
    echo_sql: bool = False

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        return cls(
            database_url=os.environ.get("DATABASE_URL"),
            pool_size=_env_int("DB_POOL_SIZE", 5),
            max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
            pool_timeout=_env_int("DB_POOL_TIMEOUT", 30),
            pool_recycle=_env_int("DB_POOL_RECYCLE", 1800),
            echo_sql=_env_flag("DB_ECHO_SQL"),
        )

    def get_database_url(self, override: Optional[str] = None) -> str:
        """Return the URL to connect to: an explicit override wins
        over DATABASE_URL"""
        url = override or self.database_url
        if not url:
            raise ValueError(
                "No database configured: set DATABASE_URL to a "
                "postgresql:// or sqlite:/// URL"
            )
        return url

    @staticmethod
    def is_sqlite(url: str) -> bool:
        return url.startswith("sqlite")

    def pool_options(self) -> Dict[str, Any]:
        """Keyword arguments for a pooled PostgreSQL engine"""
        return dict(
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            pool_timeout=self.pool_timeout,
            pool_recycle=self.pool_recycle,
        )


_config: Optional[DatabaseConfig] = None


def get_config() -> DatabaseConfig:
    """The active settings, read from the environment on first use"""
    global _config
    if _config is None:
        _config = DatabaseConfig.from_env()
    return _config


def set_config(config: Optional[DatabaseConfig]) -> None:
    """Replace the active settings; None rereads the environment"""
    global _config
    _config = config
