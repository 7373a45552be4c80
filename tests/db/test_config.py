"""
Tests for the database settings read from the environment.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from db.config import DatabaseConfig, get_config, set_config


@pytest.fixture
def fresh_config() -> Iterator[None]:
    """Drop the cached settings before and after the test"""
    set_config(None)
    yield
    set_config(None)


class TestDatabaseConfig:
    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/daily")
        monkeypatch.setenv("DB_POOL_SIZE", "12")
        monkeypatch.setenv("DB_POOL_RECYCLE", "600")
        monkeypatch.setenv("DB_ECHO_SQL", "True")
        monkeypatch.delenv("DB_MAX_OVERFLOW", raising=False)
        config = DatabaseConfig.from_env()
        assert config.database_url == "postgresql://u:p@db:5432/daily"
        assert config.echo_sql is True
        assert config.pool_options() == {
            "pool_size": 12,
            "max_overflow": 10,
            "pool_timeout": 30,
            "pool_recycle": 600,
        }

    def test_echo_off_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DB_ECHO_SQL", raising=False)
        assert DatabaseConfig.from_env().echo_sql is False

    def test_override_wins(self) -> None:
        config = DatabaseConfig(database_url="postgresql://localhost/daily")
        assert config.get_database_url() == "postgresql://localhost/daily"
        assert config.get_database_url("sqlite:///x.db") == "sqlite:///x.db"

    def test_missing_url(self) -> None:
        with pytest.raises(ValueError):
            DatabaseConfig().get_database_url()

    def test_is_sqlite(self) -> None:
        assert DatabaseConfig.is_sqlite("sqlite:///tmp/test.db")
        assert not DatabaseConfig.is_sqlite("postgresql://localhost/daily")


class TestConfigAccessors:
    def test_cached_until_replaced(
        self, fresh_config: None, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DATABASE_URL", "sqlite:///first.db")
        first = get_config()
        monkeypatch.setenv("DATABASE_URL", "sqlite:///second.db")
        assert get_config() is first
        set_config(None)
        assert get_config().database_url == "sqlite:///second.db"

    def test_set_config(self, fresh_config: None) -> None:
        custom = DatabaseConfig(database_url="sqlite:///custom.db", pool_size=2)
        set_config(custom)
        assert get_config() is custom
