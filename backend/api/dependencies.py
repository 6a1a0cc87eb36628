from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from models.user import User, UserType
from services.accounts import AccountService
from services.authorization import gate
from services.errors import UnauthenticatedError
from services.notifications import Notifier, get_notifier
from services.session import SessionCoordinator
from services.stores import UserStore
from services.tokens import Claims, TokenIssuer, TokenKind, TokenValidator

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

security = HTTPBearer(auto_error=False)


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer.from_settings()


@lru_cache()
def get_token_validator() -> TokenValidator:
    return TokenValidator.from_settings()


def get_session_coordinator(
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    validator: TokenValidator = Depends(get_token_validator),
) -> SessionCoordinator:
    return SessionCoordinator(db, issuer, validator)


def get_account_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> AccountService:
    return AccountService(db, notifier)


async def get_optional_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    validator: TokenValidator = Depends(get_token_validator),
) -> Optional[Claims]:
    """Claims from the accessToken cookie (or a Bearer header), None when absent or invalid."""
    claims = validator.verify(request.cookies.get(ACCESS_TOKEN_COOKIE), TokenKind.ACCESS)
    if claims is None and credentials is not None:
        # A stale cookie must not shadow a valid header
        claims = validator.verify(credentials.credentials, TokenKind.ACCESS)
    return claims


async def get_current_claims(
    claims: Optional[Claims] = Depends(get_optional_claims),
) -> Claims:
    if claims is None:
        raise UnauthenticatedError(reason="missing or invalid access token")
    return claims


async def require_admin(
    claims: Optional[Claims] = Depends(get_optional_claims),
) -> Claims:
    return gate.check(claims, required_role=UserType.ADMIN)


async def get_current_user(
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The account behind the access token; deleted or deactivated accounts count as unauthenticated."""
    user = await UserStore(db).get_by_id(claims.user_id)
    if user is None or not user.is_active:
        raise UnauthenticatedError(reason="token user missing or inactive")
    return user
