"""
JWT access/refresh token issuing and validation.

Access and refresh tokens carry the same claim set (user id, email, user
type) but are signed with different secrets, so holding one kind never lets
a client forge the other. Validation is stateless; revocation of refresh
tokens is layered on top by the session coordinator.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import uuid4

from jose import jwt
from jose.exceptions import JOSEError

from config import Settings, get_settings
from models.user import UserType
from services.errors import SigningError

logger = logging.getLogger(__name__)


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class Claims:
    """The identity embedded in every token. All three fields are required."""

    user_id: int
    email: str
    user_type: UserType

    def __post_init__(self):
        if isinstance(self.user_id, bool) or not isinstance(self.user_id, int) or self.user_id <= 0:
            raise ValueError("claims require a positive integer user_id")
        if not isinstance(self.email, str) or not self.email.strip():
            raise ValueError("claims require an email")
        # Accept "admin" as well as UserType.ADMIN; anything else is refused
        object.__setattr__(self, "user_type", UserType(self.user_type))

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN

    @classmethod
    def for_user(cls, user) -> "Claims":
        return cls(user_id=user.id, email=user.email, user_type=user.user_type)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Optional["Claims"]:
        """Build claims from a decoded JWT payload, or None if any field is missing/invalid."""
        try:
            return cls(
                user_id=int(payload["sub"]),
                email=payload["email"],
                user_type=payload["user_type"],
            )
        except (KeyError, TypeError, ValueError):
            return None


@dataclass(frozen=True)
class IssuedToken:
    token: str
    jti: str
    expires_at: datetime


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a raw token; the only form that is ever stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class _TokenConfig:
    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        if not access_secret or not refresh_secret:
            raise SigningError(reason="JWT signing secret is not configured")
        if access_secret == refresh_secret:
            raise SigningError(reason="access and refresh tokens must use different secrets")
        self._secrets = {
            TokenKind.ACCESS: access_secret,
            TokenKind.REFRESH: refresh_secret,
        }
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience

    def secret_for(self, kind: TokenKind) -> str:
        return self._secrets[TokenKind(kind)]


class TokenIssuer(_TokenConfig):
    """
    Mints signed tokens from a `Claims` value.

    Issuing is a pure function of the claims, the clock and the secrets: pass
    `now` to pin the clock.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        super().__init__(access_secret, refresh_secret, algorithm, issuer, audience)
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TokenIssuer":
        settings = settings or get_settings()
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    def issue_access_token(self, claims: Claims, now: Optional[datetime] = None) -> IssuedToken:
        return self._issue(claims, TokenKind.ACCESS, self.access_ttl, now)

    def issue_refresh_token(self, claims: Claims, now: Optional[datetime] = None) -> IssuedToken:
        return self._issue(claims, TokenKind.REFRESH, self.refresh_ttl, now)

    def _issue(
        self,
        claims: Claims,
        kind: TokenKind,
        ttl: timedelta,
        now: Optional[datetime],
    ) -> IssuedToken:
        if not isinstance(claims, Claims):
            raise SigningError(reason=f"refusing to sign {type(claims).__name__}, expected Claims")

        issued_at = now or datetime.now(timezone.utc)
        expire = issued_at + ttl
        jti = str(uuid4())
        to_encode = {
            "sub": str(claims.user_id),
            "email": claims.email,
            "user_type": claims.user_type.value,
            "type": kind.value,
            "iat": issued_at,
            "exp": expire,
            "jti": jti,
        }
        if self.issuer:
            to_encode["iss"] = self.issuer
        if self.audience:
            to_encode["aud"] = self.audience

        try:
            token = jwt.encode(to_encode, self.secret_for(kind), algorithm=self.algorithm)
        except JOSEError as exc:
            logger.error("Failed to sign %s token: %s", kind.value, exc)
            raise SigningError(reason=str(exc)) from exc
        return IssuedToken(token=token, jti=jti, expires_at=expire)


class TokenValidator(_TokenConfig):
    """
    Checks signature, expiry, issuer/audience and token kind.

    `verify` never raises for bad input: every failure is reported as None,
    which callers treat as "unauthenticated".
    """

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TokenValidator":
        settings = settings or get_settings()
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET,
            refresh_secret=settings.JWT_REFRESH_SECRET,
            algorithm=settings.ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
        )

    def decode(self, token: Optional[str], kind: TokenKind) -> Optional[dict]:
        if not isinstance(token, str) or not token.strip():
            return None
        try:
            payload = jwt.decode(
                token.strip(),
                self.secret_for(kind),
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"require_exp": True, "require_sub": True},
            )
        except JOSEError:
            return None
        if payload.get("type") != TokenKind(kind).value:
            return None
        return payload

    def verify(self, token: Optional[str], kind: TokenKind) -> Optional[Claims]:
        payload = self.decode(token, kind)
        if payload is None:
            return None
        return Claims.from_payload(payload)
