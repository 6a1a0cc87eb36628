"""
Password hashing (bcrypt).

bcrypt is deliberately slow, so request handlers use the `*_async` variants
which run it in a worker thread instead of on the event loop.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Optional

import bcrypt

from config import get_settings

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72


# Compared against when no account matches, so unknown emails cost the same
# time as wrong passwords. Built with the configured work factor on first use.
@lru_cache()
def _dummy_hash(rounds: int) -> str:
    return bcrypt.hashpw(b"storefront-dummy-password", bcrypt.gensalt(rounds=rounds)).decode("ascii")


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    if rounds is None:
        rounds = get_settings().BCRYPT_ROUNDS
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """
    Constant-time check of `password` against a stored bcrypt hash.

    A mismatch returns False. So does a stored value that is not a bcrypt
    hash at all: a corrupt record must not let anyone in, nor crash login.
    """
    if password is None or not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def burn_password_check(password: str) -> None:
    """Spend one bcrypt comparison without a real hash."""
    verify_password(password or "", _dummy_hash(get_settings().BCRYPT_ROUNDS))


async def hash_password_async(password: str, rounds: Optional[int] = None) -> str:
    return await asyncio.to_thread(hash_password, password, rounds)


async def verify_password_async(password: str, password_hash: Optional[str]) -> bool:
    return await asyncio.to_thread(verify_password, password, password_hash)


async def burn_password_check_async(password: str) -> None:
    await asyncio.to_thread(burn_password_check, password)
