"""
Tests for the database handle and the token cleanup job.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, text

from db.database import Database, _normalize_url
from models.refresh_token import RefreshToken
from services import cleanup
from services.cleanup import purge_expired_tokens
from services.stores import RefreshTokenStore
from services.tokens import hash_token


class TestNormalizeUrl:
    def test_postgres_gets_async_driver(self):
        assert _normalize_url("postgresql://u:p@db/shop") == "postgresql+asyncpg://u:p@db/shop"

    def test_other_urls_untouched(self):
        assert _normalize_url("sqlite+aiosqlite:///./x.db") == "sqlite+aiosqlite:///./x.db"
        assert _normalize_url("postgresql+asyncpg://u@db/shop") == "postgresql+asyncpg://u@db/shop"


class TestDatabase:
    def test_engine_is_lazy(self):
        database = Database("sqlite+aiosqlite:///./never_created.db")

        assert database.is_sqlite
        assert not database.is_initialized

    @pytest.mark.asyncio
    async def test_dispose_resets_handle(self, test_database):
        assert test_database.is_initialized

        await test_database.dispose()

        assert not test_database.is_initialized

    @pytest.mark.asyncio
    async def test_sqlite_enforces_foreign_keys(self, test_database):
        async with test_database.engine.connect() as conn:
            result = await conn.execute(text("PRAGMA foreign_keys"))
            assert result.scalar() == 1

    @pytest.mark.asyncio
    async def test_init_is_idempotent(self, test_database):
        await test_database.init()
        await test_database.init()


class TestPurgeExpiredTokens:
    @pytest.mark.asyncio
    async def test_purge(self, test_database, db_session, make_user):
        user = await make_user()
        store = RefreshTokenStore(db_session)
        now = datetime.now(timezone.utc)
        await store.persist(user.id, hash_token("live"), now + timedelta(days=1))
        await store.persist(user.id, hash_token("dead"), now - timedelta(days=1))
        await store.commit()

        assert await purge_expired_tokens(test_database) == 1

        remaining = (await db_session.execute(select(RefreshToken.token_hash))).scalars().all()
        assert remaining == [hash_token("live")]

    @pytest.mark.asyncio
    async def test_purge_nothing(self, test_database):
        assert await purge_expired_tokens(test_database) == 0


class TestCleanupTask:
    @pytest.mark.asyncio
    async def test_stop_waits_for_task_to_exit(self):
        cleanup.start_cleanup_task()
        task = cleanup._cleanup_task
        assert task is not None and not task.done()

        await cleanup.stop_cleanup_task()

        assert task.done()
        assert cleanup._cleanup_task is None

    @pytest.mark.asyncio
    async def test_stop_without_task_is_harmless(self):
        await cleanup.stop_cleanup_task()

        assert cleanup._cleanup_task is None
