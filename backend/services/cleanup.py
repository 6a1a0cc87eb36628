"""Removal of dead refresh token records (expired or logged out)."""

import asyncio
import logging
from typing import Optional

from db.database import Database, database as default_database
from services.stores import RefreshTokenStore

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 3600  # Run cleanup every hour

_cleanup_task: Optional[asyncio.Task] = None


async def purge_expired_tokens(database: Optional[Database] = None) -> int:
    """Delete refresh records whose expiry has passed; returns how many."""
    database = database or default_database
    async with database.sessionmaker() as db:
        store = RefreshTokenStore(db)
        removed = await store.purge_expired()
        await store.commit()
    if removed:
        logger.info("Token cleanup removed %d expired refresh tokens", removed)
    return removed


async def _periodic_token_cleanup():
    while True:
        try:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
            await purge_expired_tokens()
        except asyncio.CancelledError:
            logger.info("Token cleanup task cancelled")
            break
        except Exception as e:
            # Keep running; the next pass retries
            logger.error(f"Error in token cleanup task: {e}")


def start_cleanup_task():
    """Start the periodic token cleanup background task."""
    global _cleanup_task
    if _cleanup_task is None or _cleanup_task.done():
        _cleanup_task = asyncio.create_task(_periodic_token_cleanup())
        logger.debug("Started periodic token cleanup task")


async def stop_cleanup_task():
    """Stop the periodic token cleanup task and wait until it has exited."""
    global _cleanup_task
    task, _cleanup_task = _cleanup_task, None
    if task and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("Stopped periodic token cleanup task")
