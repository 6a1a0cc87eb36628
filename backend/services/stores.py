"""
Persistence access for users, refresh tokens and orders.

Every call is bounded by a timeout (STORE_TIMEOUT_SECONDS unless the store is
given its own). Timeouts and connection-level database failures surface as
StoreUnavailableError instead of hanging the request.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, List, Optional, TypeVar

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from models.order import Order
from models.refresh_token import RefreshToken
from models.user import User
from services.errors import ConflictError, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class _Store:
    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout if timeout is not None else get_settings().STORE_TIMEOUT_SECONDS

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("%s.%s timed out after %.1fs", type(self).__name__, operation, self.timeout)
            raise StoreUnavailableError(reason=f"{operation} timed out") from exc
        except (OperationalError, InterfaceError, OSError) as exc:
            logger.error("%s.%s failed: %s", type(self).__name__, operation, exc.__class__.__name__)
            raise StoreUnavailableError(reason=f"{operation} failed") from exc

    async def flush(self) -> None:
        await self._run("flush", self.db.flush())

    async def commit(self) -> None:
        await self._run("commit", self.db.commit())

    async def refresh(self, instance) -> None:
        await self._run("refresh", self.db.refresh(instance))


class UserStore(_Store):
    async def get_by_id(self, user_id: int) -> Optional[User]:
        return await self._run("get_by_id", self.db.get(User, user_id))

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self._run(
            "get_by_email",
            self.db.execute(select(User).where(User.email == normalize_email(email))),
        )
        return result.scalar_one_or_none()

    async def get_active_by_email(self, email: str) -> Optional[User]:
        result = await self._run(
            "get_active_by_email",
            self.db.execute(
                select(User).where(
                    and_(User.email == normalize_email(email), User.is_active == True)  # noqa: E712
                )
            ),
        )
        return result.scalar_one_or_none()

    async def get_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        result = await self._run(
            "get_by_reset_token_hash",
            self.db.execute(select(User).where(User.reset_password_token_hash == token_hash)),
        )
        return result.scalar_one_or_none()

    async def list_users(self, skip: int = 0, limit: int = 50) -> tuple[List[User], int]:
        total = await self._run("count", self.db.scalar(select(func.count()).select_from(User)))
        result = await self._run(
            "list_users",
            self.db.execute(select(User).order_by(User.id).offset(skip).limit(limit)),
        )
        return list(result.scalars().all()), total or 0

    async def add(self, user: User) -> User:
        user.email = normalize_email(user.email)
        self.db.add(user)
        try:
            await self._run("add", self.db.flush())
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("User with this email already exists", reason="duplicate email") from exc
        return user

    async def delete(self, user: User) -> None:
        await self._run("delete", self.db.delete(user))
        await self._run("flush", self.db.flush())


class RefreshTokenStore(_Store):
    """
    Server-side record of issued refresh tokens, keyed by SHA-256 hash.

    A record counts only while `is_active` is set and `expires_at` lies in
    the future. Lookups that fail either test behave exactly like lookups for
    a token that was never issued.
    """

    async def persist(
        self,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> RefreshToken:
        record = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            device_info=device_info[:200] if device_info else None,
            ip_address=ip_address[:45] if ip_address else None,
            is_active=True,
            expires_at=expires_at,
        )
        self.db.add(record)
        await self._run("persist", self.db.flush())
        return record

    async def lookup_active(self, token_hash: str, now: Optional[datetime] = None) -> Optional[RefreshToken]:
        now = now or datetime.now(timezone.utc)
        result = await self._run(
            "lookup_active",
            self.db.execute(
                select(RefreshToken).where(
                    and_(
                        RefreshToken.token_hash == token_hash,
                        RefreshToken.is_active == True,  # noqa: E712
                        RefreshToken.expires_at > now,
                    )
                )
            ),
        )
        return result.scalar_one_or_none()

    async def touch(self, record: RefreshToken, now: Optional[datetime] = None) -> None:
        record.last_used_at = now or datetime.now(timezone.utc)
        await self._run("touch", self.db.flush())

    async def invalidate(self, token_hash: str) -> bool:
        """
        Deactivate the record and force its expiry to now.

        Idempotent: returns False (and changes nothing) when no active record
        has this hash.
        """
        result = await self._run(
            "invalidate",
            self.db.execute(
                update(RefreshToken)
                .where(
                    and_(
                        RefreshToken.token_hash == token_hash,
                        RefreshToken.is_active == True,  # noqa: E712
                    )
                )
                .values(is_active=False, expires_at=datetime.now(timezone.utc))
            ),
        )
        return (result.rowcount or 0) > 0

    async def invalidate_all_for_user(self, user_id: int) -> int:
        result = await self._run(
            "invalidate_all_for_user",
            self.db.execute(
                update(RefreshToken)
                .where(
                    and_(
                        RefreshToken.user_id == user_id,
                        RefreshToken.is_active == True,  # noqa: E712
                    )
                )
                .values(is_active=False, expires_at=datetime.now(timezone.utc))
            ),
        )
        return result.rowcount or 0

    async def list_active_for_user(self, user_id: int) -> List[RefreshToken]:
        result = await self._run(
            "list_active_for_user",
            self.db.execute(
                select(RefreshToken)
                .where(
                    and_(
                        RefreshToken.user_id == user_id,
                        RefreshToken.is_active == True,  # noqa: E712
                        RefreshToken.expires_at > datetime.now(timezone.utc),
                    )
                )
                .order_by(RefreshToken.created_at.desc(), RefreshToken.id.desc())
            ),
        )
        return list(result.scalars().all())

    async def purge_expired(self) -> int:
        """Delete records whose expiry has passed (revoked records included)."""
        result = await self._run(
            "purge_expired",
            self.db.execute(
                delete(RefreshToken)
                .where(RefreshToken.expires_at <= datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            ),
        )
        return result.rowcount or 0


class OrderStore(_Store):
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        return await self._run("get_by_id", self.db.get(Order, order_id))

    async def list_orders(
        self,
        user_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[Order], int]:
        """Orders of one user, or of everyone when user_id is None."""
        query = select(Order)
        count_query = select(func.count()).select_from(Order)
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
            count_query = count_query.where(Order.user_id == user_id)

        total = await self._run("count", self.db.scalar(count_query))
        result = await self._run(
            "list_orders",
            self.db.execute(query.order_by(Order.placed_at.desc(), Order.id.desc()).offset(skip).limit(limit)),
        )
        return list(result.scalars().all()), total or 0
