"""
Login / refresh / logout orchestration.

Session lifecycle as seen from the server:

    anonymous --login--> authenticated (access valid)
    authenticated (access expired, refresh valid) --refresh--> authenticated (access valid)
    any --logout--> logged out

Refresh tokens are not rotated: a refresh token keeps minting access tokens
until it is logged out or expires. Each login creates an independent refresh
record, so a user may hold any number of concurrent sessions.

Every failure that reaches the client is one of the generic categories in
services.errors; the specific reason ("unknown email", "revoked token", ...)
is only logged and written to the audit trail.
"""

import logging
from dataclasses import dataclass
from typing import List, NoReturn, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models.auth_audit import AuthAuditLog
from models.refresh_token import RefreshToken
from models.user import User
from services.audit import AuditService
from services.errors import InvalidCredentialsError, RevokedTokenError, UnauthenticatedError
from services.passwords import burn_password_check_async, verify_password_async
from services.stores import RefreshTokenStore, UserStore
from services.tokens import Claims, IssuedToken, TokenIssuer, TokenKind, TokenValidator, hash_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTokens:
    """Result of a successful login."""

    user: User
    access_token: IssuedToken
    refresh_token: IssuedToken


@dataclass(frozen=True)
class RefreshedSession:
    """Result of a successful refresh: a new access token only."""

    user: User
    access_token: IssuedToken


class SessionCoordinator:
    def __init__(
        self,
        db: AsyncSession,
        issuer: TokenIssuer,
        validator: TokenValidator,
        store_timeout: Optional[float] = None,
    ):
        self.db = db
        self.issuer = issuer
        self.validator = validator
        self.users = UserStore(db, timeout=store_timeout)
        self.refresh_tokens = RefreshTokenStore(db, timeout=store_timeout)
        self.audit = AuditService(db, timeout=store_timeout)

    async def login(
        self,
        email: str,
        password: str,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> SessionTokens:
        """
        Verify credentials, issue both tokens and record the refresh token.

        Unknown email, inactive account and wrong password all raise the same
        InvalidCredentialsError, and all three cost one bcrypt comparison.
        """
        user = await self.users.get_active_by_email(email)

        if user is None:
            await burn_password_check_async(password)
            await self._reject_login(None, "unknown or inactive email", device_info, ip_address)

        if not await verify_password_async(password, user.password_hash):
            await self._reject_login(user.id, "wrong password", device_info, ip_address)

        claims = Claims.for_user(user)
        access = self.issuer.issue_access_token(claims)
        refresh = self.issuer.issue_refresh_token(claims)

        await self.refresh_tokens.persist(
            user_id=user.id,
            token_hash=hash_token(refresh.token),
            expires_at=refresh.expires_at,
            device_info=device_info,
            ip_address=ip_address,
        )
        await self.audit.log(
            action=AuthAuditLog.ACTION_LOGIN,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=device_info,
            success=True,
        )
        await self.refresh_tokens.commit()

        logger.info("User %s logged in", user.id)
        return SessionTokens(user=user, access_token=access, refresh_token=refresh)

    async def _reject_login(
        self,
        user_id: Optional[int],
        reason: str,
        device_info: Optional[str],
        ip_address: Optional[str],
    ) -> NoReturn:
        logger.warning("Login failed: %s (user_id=%s, ip=%s)", reason, user_id, ip_address)
        await self.audit.log(
            action=AuthAuditLog.ACTION_FAILED_LOGIN,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=device_info,
            success=False,
            error_message=reason,
        )
        await self.users.commit()
        raise InvalidCredentialsError(reason=reason)

    async def refresh(
        self,
        refresh_token: Optional[str],
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> RefreshedSession:
        """
        Exchange a refresh token for a new access token.

        The token must pass signature/expiry validation first; only then is
        the store consulted. A structurally valid token without an active
        store record raises RevokedTokenError. The user is re-read so a
        deactivated account never receives a new access token.
        """
        refresh_token = refresh_token.strip() if refresh_token else refresh_token
        claims = self.validator.verify(refresh_token, TokenKind.REFRESH)
        if claims is None:
            logger.warning("Refresh rejected: missing, malformed or expired token (ip=%s)", ip_address)
            raise UnauthenticatedError(reason="invalid or expired refresh token")

        record = await self.refresh_tokens.lookup_active(hash_token(refresh_token))
        if record is None or record.user_id != claims.user_id:
            logger.warning(
                "Refresh rejected: token for user %s is revoked or unknown (ip=%s)",
                claims.user_id,
                ip_address,
            )
            # user_id stays in metadata: the account may no longer exist
            await self.audit.log(
                action=AuthAuditLog.ACTION_REVOKED_TOKEN_USE,
                ip_address=ip_address,
                user_agent=device_info,
                success=False,
                error_message="refresh token not active in store",
                metadata={"claimed_user_id": claims.user_id},
            )
            await self.refresh_tokens.commit()
            raise RevokedTokenError(reason="refresh token revoked")

        user = await self.users.get_by_id(claims.user_id)
        if user is None or not user.is_active:
            logger.warning("Refresh rejected: user %s missing or inactive", claims.user_id)
            raise UnauthenticatedError(reason="user missing or inactive")

        access = self.issuer.issue_access_token(Claims.for_user(user))

        await self.refresh_tokens.touch(record)
        await self.audit.log(
            action=AuthAuditLog.ACTION_TOKEN_REFRESH,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=device_info,
            success=True,
        )
        await self.refresh_tokens.commit()

        logger.debug("Issued new access token for user %s", user.id)
        return RefreshedSession(user=user, access_token=access)

    async def logout(
        self,
        refresh_token: Optional[str],
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """
        Invalidate the refresh token's record if there is one.

        Without a token nothing is touched. Returns whether an active record
        was invalidated; callers clear cookies either way.
        """
        refresh_token = refresh_token.strip() if refresh_token else refresh_token
        if not refresh_token:
            return False

        invalidated = await self.refresh_tokens.invalidate(hash_token(refresh_token))
        if invalidated:
            # Expired tokens still log out; their claims are just unavailable
            claims = self.validator.verify(refresh_token, TokenKind.REFRESH)
            await self.audit.log(
                action=AuthAuditLog.ACTION_LOGOUT,
                user_id=claims.user_id if claims else None,
                ip_address=ip_address,
                user_agent=device_info,
                success=True,
            )
        await self.refresh_tokens.commit()
        return invalidated

    async def logout_all(
        self,
        user_id: int,
        device_info: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> int:
        """Invalidate every active refresh record of the user."""
        count = await self.refresh_tokens.invalidate_all_for_user(user_id)
        await self.audit.log(
            action=AuthAuditLog.ACTION_LOGOUT_ALL,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=device_info,
            success=True,
            metadata={"sessions_revoked": count},
        )
        await self.refresh_tokens.commit()
        logger.info("Revoked %d sessions for user %s", count, user_id)
        return count

    async def active_sessions(self, user_id: int) -> List[RefreshToken]:
        return await self.refresh_tokens.list_active_for_user(user_id)
