"""
Column types shared by the models.
UuidType is native UUID on PostgreSQL (matching the Alembic schema) and CHAR-like text on SQLite.
"""
import uuid

from sqlalchemy import String, TypeDecorator
from sqlalchemy.dialects import postgresql


class UuidType(TypeDecorator):
    """Always hands uuid.UUID back to Python; accepts UUID or its string form on the way in."""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        return value if dialect.name == "postgresql" else str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))
