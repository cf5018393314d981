"""Database utilities for the SQL-backed remote store."""

from .session import build_engine, build_session_factory, create_schema, session_scope

__all__ = [
    "build_engine",
    "build_session_factory",
    "create_schema",
    "session_scope",
]
