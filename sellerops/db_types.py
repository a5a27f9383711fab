"""Database-agnostic type definitions for SQLAlchemy models.

Models run against PostgreSQL in production and SQLite in tests.
"""
from sqlalchemy import JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON everywhere else
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid
