"""Custom SQLAlchemy column types."""
from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import ARRAY as PGARRAY
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from sqlalchemy.types import TypeDecorator


class StringArray(TypeDecorator):
    """Store string arrays with Postgres ARRAY and SQLite JSON."""

    impl = SQLiteJSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGARRAY(String(64)))
        return dialect.type_descriptor(SQLiteJSON())

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return [str(v) for v in value]

    def process_result_value(self, value, dialect):
        if value is None:
            return []
        return list(value)
