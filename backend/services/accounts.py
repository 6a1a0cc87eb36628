"""
Account lifecycle: registration, profile changes, password reset and phone
verification.

Reset tokens and phone codes leave the process only through the notifier;
the database keeps their SHA-256 hashes.
"""

import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from models.auth_audit import AuthAuditLog
from models.refresh_token import as_utc
from models.user import User, UserType
from services.audit import AuditService
from services.errors import BadRequestError, ConflictError
from services.notifications import Notifier
from services.passwords import hash_password_async
from services.stores import RefreshTokenStore, UserStore, normalize_email
from services.tokens import hash_token

logger = logging.getLogger(__name__)

PASSWORD_RESET_MESSAGE = "If an account with that email exists, a password reset link has been sent"


def generate_phone_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def _is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    return expires_at is None or as_utc(expires_at) <= now


class AccountService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: Notifier,
        store_timeout: Optional[float] = None,
    ):
        self.db = db
        self.notifier = notifier
        self.settings = get_settings()
        self.users = UserStore(db, timeout=store_timeout)
        self.refresh_tokens = RefreshTokenStore(db, timeout=store_timeout)
        self.audit = AuditService(db, timeout=store_timeout)

    async def register(
        self,
        email: str,
        password: str,
        first_name: str = "",
        last_name: str = "",
        phone: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        """Create a customer account. Admins are only created from the CLI."""
        if await self.users.get_by_email(email) is not None:
            raise ConflictError("User with this email already exists", reason="duplicate email")

        user = User(
            email=normalize_email(email),
            password_hash=await hash_password_async(password),
            first_name=first_name or "",
            last_name=last_name or "",
            phone=phone,
            user_type=UserType.CUSTOMER,
            is_active=True,
        )
        await self.users.add(user)
        await self.audit.log(
            action=AuthAuditLog.ACTION_REGISTER,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await self.users.commit()
        logger.info("Registered user %s", user.id)
        return user

    async def update_user(self, user: User, changes: Mapping[str, Any]) -> User:
        """
        Apply already-authorized field changes.

        Changing the password or deactivating the account revokes every
        session of the user.
        """
        revoke_sessions = False

        if "email" in changes and changes["email"] is not None:
            email = normalize_email(changes["email"])
            if email != user.email:
                existing = await self.users.get_by_email(email)
                if existing is not None and existing.id != user.id:
                    raise ConflictError("User with this email already exists", reason="duplicate email")
                user.email = email
                user.email_verified = False

        for field in ("first_name", "last_name"):
            if field in changes and changes[field] is not None:
                setattr(user, field, changes[field])

        if "phone" in changes and changes["phone"] != user.phone:
            user.phone = changes["phone"]
            user.phone_verified = False

        if changes.get("password"):
            user.password_hash = await hash_password_async(changes["password"])
            revoke_sessions = True

        if changes.get("user_type") is not None:
            user.user_type = UserType(changes["user_type"])

        if changes.get("is_active") is not None:
            user.is_active = bool(changes["is_active"])
            revoke_sessions = revoke_sessions or not user.is_active

        await self.users.flush()
        if revoke_sessions:
            count = await self.refresh_tokens.invalidate_all_for_user(user.id)
            logger.info("Revoked %d sessions for user %s after account change", count, user.id)
        await self.users.commit()
        await self.users.refresh(user)
        return user

    async def delete_user(self, user: User) -> None:
        user_id = user.id
        await self.users.delete(user)
        await self.users.commit()
        logger.info("Deleted user %s", user_id)

    async def request_password_reset(
        self,
        email: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Email a reset link if an active account exists.

        Callers answer with PASSWORD_RESET_MESSAGE either way.
        """
        user = await self.users.get_active_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown or inactive email")
            return

        token = secrets.token_urlsafe(32)
        user.reset_password_token_hash = hash_token(token)
        user.reset_password_expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        await self.users.flush()
        await self.audit.log(
            action=AuthAuditLog.ACTION_PASSWORD_RESET_REQUEST,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        await self.users.commit()

        reset_url = f"{self.settings.SITE_URL.rstrip('/')}/reset-password?{urlencode({'token': token})}"
        await self.notifier.send_password_reset(user.email, reset_url)

    async def reset_password(
        self,
        token: str,
        new_password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        """Set a new password from a reset token; all sessions are revoked."""
        user = await self.users.get_by_reset_token_hash(hash_token(token)) if token else None
        now = datetime.now(timezone.utc)

        if user is None or not user.is_active or _is_expired(user.reset_password_expires_at, now):
            logger.warning("Password reset rejected: invalid or expired token")
            raise BadRequestError("Invalid or expired reset token", reason="reset token rejected")

        user.password_hash = await hash_password_async(new_password)
        user.reset_password_token_hash = None
        user.reset_password_expires_at = None
        await self.users.flush()

        revoked = await self.refresh_tokens.invalidate_all_for_user(user.id)
        await self.audit.log(
            action=AuthAuditLog.ACTION_PASSWORD_RESET,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"sessions_revoked": revoked},
        )
        await self.users.commit()
        logger.info("Password reset for user %s", user.id)
        return user

    async def request_phone_verification(self, user: User, phone: Optional[str] = None) -> None:
        phone = (phone or user.phone or "").strip()
        if not phone:
            raise BadRequestError("Phone number is required")

        if phone != user.phone:
            user.phone = phone
            user.phone_verified = False

        code = generate_phone_code()
        user.phone_verification_code_hash = hash_token(code)
        user.phone_verification_expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=self.settings.PHONE_CODE_EXPIRE_MINUTES
        )
        await self.users.flush()
        await self.users.commit()

        await self.notifier.send_phone_code(phone, code)

    async def verify_phone_code(self, user: User, code: str) -> User:
        now = datetime.now(timezone.utc)
        stored = user.phone_verification_code_hash
        valid = (
            bool(code)
            and stored is not None
            and not _is_expired(user.phone_verification_expires_at, now)
            and hmac.compare_digest(hash_token(code.strip()), stored)
        )

        await self.audit.log(
            action=AuthAuditLog.ACTION_PHONE_VERIFICATION,
            user_id=user.id,
            success=valid,
            error_message=None if valid else "invalid or expired code",
        )
        if not valid:
            await self.users.commit()
            raise BadRequestError("Invalid or expired verification code")

        user.phone_verified = True
        user.phone_verification_code_hash = None
        user.phone_verification_expires_at = None
        await self.users.flush()
        await self.users.commit()
        return user
