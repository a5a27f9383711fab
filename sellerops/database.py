import json
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from datetime import datetime, date
from typing import AsyncGenerator
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy import event
from sqlalchemy.orm import DeclarativeBase
from psycopg.types.json import set_json_dumps

from sellerops.config import settings

logger = logging.getLogger(__name__)


# Raw marketplace payloads are stored verbatim; they may carry Decimal or datetime
# values once they have been touched by our own mapping code.
class CustomJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, datetime, UUID and other types."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        return super().default(obj)


def custom_json_dumps(obj):
    """JSON dumps used by both psycopg and SQLAlchemy JSON columns."""
    return json.dumps(obj, cls=CustomJSONEncoder, ensure_ascii=False)


# Configure psycopg to use our custom JSON encoder globally
set_json_dumps(custom_json_dumps)


def normalize_database_url(url: str) -> str:
    """Point PostgreSQL URLs at the async psycopg driver."""
    if url.startswith("postgresql+asyncpg://"):
        return url.replace("postgresql+asyncpg://", "postgresql+psycopg://")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://")
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://")
    return url


def _enable_sqlite_savepoints(async_engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs nest correctly under the sqlite3 driver."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine_for_url(url: str, **engine_kwargs) -> AsyncEngine:
    """Create an async engine with settings appropriate for the backend."""
    database_url = normalize_database_url(url)

    # SQLite doesn't support pool settings
    if database_url.startswith("sqlite"):
        sqlite_engine = create_async_engine(
            database_url,
            echo=settings.DEBUG,
            json_serializer=custom_json_dumps,
            connect_args={"check_same_thread": False},
            **engine_kwargs,
        )
        _enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine

    return create_async_engine(
        database_url,
        echo=settings.DEBUG,
        json_serializer=custom_json_dumps,
        pool_pre_ping=True,  # Check connection health before use
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args={
            "prepare_threshold": None,  # Disable prepared statements for transaction poolers
            "connect_timeout": 30,
        },
        **engine_kwargs,
    )


engine = create_engine_for_url(settings.DATABASE_URL)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_db_session():
    """Context manager for getting database session (for background jobs)."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = None) -> None:
    """Create all tables that do not exist yet."""
    # Import all models to register them with Base.metadata
    from sellerops import models  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Database ready ({len(Base.metadata.tables)} tables registered)")
