"""
Database connection management.
Builds the async SQLAlchemy engine for a store location and hands out
short-lived sessions, one per statement.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from jobqueue.config import Settings, get_settings
from jobqueue.constants import MEMORY_DATABASE
from jobqueue.db.models import Base

logger = logging.getLogger(__name__)


def build_database_url(database: str) -> str:
    """
    Translate a store location into a SQLAlchemy URL.

    Args:
        database: A file path, ':memory:', or a full SQLAlchemy URL.

    Returns:
        The async SQLAlchemy URL for the location.
    """
    if "://" in database:
        return database
    if database == MEMORY_DATABASE:
        return "sqlite+aiosqlite://"
    return f"sqlite+aiosqlite:///{database}"


def is_memory_database(database: str) -> bool:
    """Check whether the location names a private in-memory database."""
    return build_database_url(database) in (
        "sqlite+aiosqlite://",
        f"sqlite+aiosqlite:///{MEMORY_DATABASE}",
    )


def _enable_wal(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_engine(database: str, settings: Settings | None = None) -> AsyncEngine:
    """
    Create the async engine for a store location.

    In-memory databases live inside a single connection, so they use a
    StaticPool that hands the same connection to every session. File
    databases switch to WAL and wait on locks held by other processes
    for up to the configured busy timeout.

    Args:
        database: Store location (path, ':memory:' or URL).
        settings: Optional settings override.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    settings = settings or get_settings()
    url = build_database_url(database)

    if is_memory_database(database):
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.database_echo,
        )

    engine = create_async_engine(
        url,
        connect_args={"timeout": settings.database_busy_timeout_seconds},
        echo=settings.database_echo,
    )
    if url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_wal)
    return engine


class Database:
    """
    Engine, session factory and statement lock for one store location.

    Every repository call runs inside session(), which executes a single
    statement and commits it. The lock only serialises those single
    statements within this process; it never spans a read followed by a
    write, so concurrent claims still race and are settled by the
    conditional update.
    """

    def __init__(self, database: str, settings: Settings | None = None):
        self.database = database
        self._settings = settings or get_settings()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def init(self) -> None:
        """
        Create the engine and make sure the jobs table exists.
        Safe to call on a store that already has the table.
        """
        if self._engine is not None:
            return
        self._engine = create_engine(self.database, self._settings)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database connection initialized", extra={"database": self.database})

    async def close(self) -> None:
        """Dispose of the engine. In-memory stores are lost."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection closed", extra={"database": self.database})

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """
        Session scope for one statement.

        Commits on success, rolls back and re-raises on error.

        Yields:
            AsyncSession: An async database session.
        """
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")

        async with self._lock:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
