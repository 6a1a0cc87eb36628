import logging
from enum import Enum
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


logger = logging.getLogger(__name__)


# Default insecure secrets - MUST be changed in production
_DEFAULT_ACCESS_SECRET = "dev-access-secret-change-in-production"
_DEFAULT_REFRESH_SECRET = "dev-refresh-secret-change-in-production"


class AppMode(str, Enum):
    DEV = "dev"
    PROD = "prod"


class Settings(BaseSettings):
    # Application mode - defaults to DEV for safety
    APP_MODE: AppMode = AppMode.DEV

    # Debug mode - MUST be False in production
    DEBUG: bool = False

    # Database (SQLite default for dev, use PostgreSQL in production)
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # JWT Configuration
    # Access and refresh tokens are signed with different secrets so that
    # holding one kind of token never allows forging the other.
    # Generate with: python -c "import secrets; print(secrets.token_urlsafe(64))"
    JWT_ACCESS_SECRET: str = _DEFAULT_ACCESS_SECRET
    JWT_REFRESH_SECRET: str = _DEFAULT_REFRESH_SECRET
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    JWT_ISSUER: str = "storefront"
    JWT_AUDIENCE: str = "storefront-users"

    # bcrypt work factor for password hashes
    BCRYPT_ROUNDS: int = 12

    # Upper bound for a single persistence call (seconds)
    STORE_TIMEOUT_SECONDS: float = 5.0

    # Account recovery / verification windows
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    PHONE_CODE_EXPIRE_MINUTES: int = 10
    SITE_URL: str = "http://localhost:3000"

    # CORS - comma-separated list of allowed origins
    CORS_ALLOWED_ORIGINS: str = ""

    LOG_LEVEL: str = "INFO"

    @property
    def ACCESS_TOKEN_MAX_AGE(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def REFRESH_TOKEN_MAX_AGE(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    @property
    def COOKIE_SECURE(self) -> bool:
        return self.APP_MODE == AppMode.PROD

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """
        Get allowed CORS origins.

        In production only explicitly configured origins are allowed; in
        development the local front-end ports are added.
        """
        origins: List[str] = []

        if self.APP_MODE == AppMode.DEV:
            origins = [
                "http://localhost:3000",
                "http://127.0.0.1:3000",
            ]

        if self.CORS_ALLOWED_ORIGINS:
            origins.extend(
                o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()
            )

        if not origins and self.APP_MODE == AppMode.PROD:
            logger.warning(
                "No CORS_ALLOWED_ORIGINS configured in production. "
                "Cross-origin requests will be blocked."
            )

        return origins

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env variables


def _validate_settings(settings: Settings) -> Settings:
    """
    Validate settings and fail fast on security misconfiguration.

    Equal access/refresh secrets are rejected in every mode; default secrets
    and DEBUG are rejected in production.
    """
    if settings.JWT_ACCESS_SECRET == settings.JWT_REFRESH_SECRET:
        error_msg = "JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be different."
        logger.critical(error_msg)
        raise ValueError(error_msg)

    if settings.APP_MODE == AppMode.PROD:
        if settings.JWT_ACCESS_SECRET == _DEFAULT_ACCESS_SECRET or (
            settings.JWT_REFRESH_SECRET == _DEFAULT_REFRESH_SECRET
        ):
            error_msg = (
                "CRITICAL SECURITY ERROR: Default JWT secret is being used in production! "
                "Set JWT_ACCESS_SECRET and JWT_REFRESH_SECRET environment variables."
            )
            logger.critical(error_msg)
            raise ValueError(error_msg)

        if settings.DEBUG:
            error_msg = (
                "CRITICAL SECURITY ERROR: DEBUG=True in production! "
                "Set DEBUG=False or remove the DEBUG environment variable."
            )
            logger.critical(error_msg)
            raise ValueError(error_msg)

        for name in ("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET"):
            if len(getattr(settings, name)) < 32:
                logger.warning(
                    "%s appears to be weak (less than 32 characters).", name
                )

    return settings


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Settings are validated on first access.
    """
    settings = Settings()
    return _validate_settings(settings)
