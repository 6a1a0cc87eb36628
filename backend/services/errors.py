"""
Error taxonomy for the authentication core.

Client-caused failures (401/403/404/409/400) carry a generic public message;
the internal reason is passed separately and only ever logged. Infrastructure
failures (500/503) are logged at ERROR by the exception handlers so they can
be told apart from client mistakes.
"""

from typing import Optional


class AuthServiceError(Exception):
    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, reason: Optional[str] = None):
        self.detail = message or self.public_message
        # Internal-only context for logs (e.g. "user not found" vs "bad password")
        self.reason = reason
        super().__init__(self.detail)

    @property
    def is_client_error(self) -> bool:
        return self.status_code < 500


class UnauthenticatedError(AuthServiceError):
    status_code = 401
    error_code = "UNAUTHENTICATED"
    public_message = "Authentication required"


class InvalidCredentialsError(UnauthenticatedError):
    error_code = "INVALID_CREDENTIALS"
    public_message = "Invalid credentials"


class RevokedTokenError(UnauthenticatedError):
    """
    Structurally valid refresh token whose store record is inactive or expired.

    Rendered exactly like UnauthenticatedError; only logs can tell them apart.
    """

    error_code = UnauthenticatedError.error_code


class ForbiddenError(AuthServiceError):
    status_code = 403
    error_code = "FORBIDDEN"
    public_message = "Forbidden"


class NotFoundError(AuthServiceError):
    status_code = 404
    error_code = "NOT_FOUND"
    public_message = "Resource not found"


class ConflictError(AuthServiceError):
    status_code = 409
    error_code = "CONFLICT"
    public_message = "Resource already exists"


class BadRequestError(AuthServiceError):
    status_code = 400
    error_code = "BAD_REQUEST"
    public_message = "Bad request"


class InfrastructureError(AuthServiceError):
    status_code = 500
    error_code = "INTERNAL_ERROR"
    public_message = "Internal server error"


class SigningError(InfrastructureError):
    """Token signing is misconfigured (absent/equal secrets) or failed."""

    error_code = "SIGNING_ERROR"


class StoreUnavailableError(InfrastructureError):
    status_code = 503
    error_code = "STORE_UNAVAILABLE"
    public_message = "Service temporarily unavailable"
