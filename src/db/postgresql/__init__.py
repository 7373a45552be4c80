"""
SQLAlchemy backend implementation.

This package provides the PostgreSQL implementation of the database
protocol interface. The same models and repositories also run on
SQLite, which is what local runs and the test suite use.
"""

from __future__ import annotations

from .backend import PostgreSQLBackend

__all__ = ["PostgreSQLBackend"]
