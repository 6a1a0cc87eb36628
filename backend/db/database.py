"""
Database configuration and session management.

The engine and session factory are owned by a single `Database` handle that is
created lazily (on first use or explicitly at startup) and disposed on
shutdown. Nothing else holds connection state.

SQLite vs PostgreSQL Compatibility Notes:
-----------------------------------------
SQLite (aiosqlite) is the development default, PostgreSQL (asyncpg) is
intended for production. All SQL used by the models is portable between the
two:

1. func.now() - Works on both (SQLite: CURRENT_TIMESTAMP, PostgreSQL: NOW())
2. ForeignKey with ondelete - Works on both (SQLite requires PRAGMA foreign_keys=ON)
3. Enum() - Creates VARCHAR + CHECK on SQLite
4. DateTime(timezone=True) - SQLite stores naive UTC strings; always bind UTC values
"""

import logging
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _normalize_url(database_url: str) -> str:
    # Convert URL for async drivers
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


class Database:
    """
    Process-wide database handle.

    The engine is created on first access of `engine`/`sessionmaker` (or by
    `init()` during application startup) and released by `dispose()`.
    """

    def __init__(self, url: Optional[str] = None, **engine_kwargs):
        self._url = url
        self._engine_kwargs = engine_kwargs
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def url(self) -> str:
        if self._url is None:
            self._url = get_settings().DATABASE_URL
        return _normalize_url(self._url)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        if self._sessionmaker is None:
            self._sessionmaker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autocommit=False,
                autoflush=False,
            )
        return self._sessionmaker

    def _create_engine(self) -> AsyncEngine:
        kwargs: dict = {"echo": False}
        if not self.is_sqlite:
            # pool_pre_ping: verify connections are alive before using them.
            # Total max connections = pool_size + max_overflow.
            kwargs["pool_pre_ping"] = True
            kwargs["pool_size"] = 5
            kwargs["max_overflow"] = 10
        kwargs.update(self._engine_kwargs)

        engine = create_async_engine(self.url, **kwargs)

        if self.is_sqlite:
            # SQLite does not enforce foreign keys by default - must be enabled per connection
            @event.listens_for(engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        logger.info("Database engine created (%s)", "sqlite" if self.is_sqlite else "postgresql")
        return engine

    async def init(self) -> None:
        """Create the engine and any missing tables."""
        # Import models so they register with Base.metadata
        import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, checkfirst=True)
        logger.info("Database initialized successfully")

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._sessionmaker = None


database = Database()


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Request-scoped session dependency.

    Routes call commit explicitly (usually through the services); the session
    is rolled back if the request raises.
    """
    async with database.sessionmaker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
