"""Authentication routes: cookie-based sessions with revocable refresh tokens."""

import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_account_service,
    get_current_claims,
    get_current_user,
    get_session_coordinator,
)
from api.errors import error_response, log_service_error
from config import get_settings
from models.user import User
from schemas.common import ErrorResponse, MessageResponse
from schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    PhoneVerificationRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionListResponse,
    SessionResponse,
    UserDetailResponse,
    UserResponse,
    VerifyPhoneCodeRequest,
)
from services.accounts import PASSWORD_RESET_MESSAGE, AccountService
from services.audit import get_client_info
from services.errors import AuthServiceError, StoreUnavailableError, UnauthenticatedError
from services.session import SessionCoordinator
from services.tokens import Claims

settings = get_settings()
router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
logger = logging.getLogger(__name__)


def _set_auth_cookie(response: Response, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="strict",
    )


def _clear_auth_cookies(response: Response) -> None:
    # Same attributes as when set, otherwise browsers keep the original cookie
    for key in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(
            key=key,
            path="/",
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite="strict",
        )


def _failure_clearing_cookies(request: Request, exc: AuthServiceError) -> JSONResponse:
    log_service_error(request, exc)
    failure = error_response(exc)
    _clear_auth_cookies(failure)
    return failure


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """
    Log in with email and password.

    Sets the `accessToken` (short-lived) and `refreshToken` (long-lived)
    HttpOnly cookies. Any credential problem answers the same generic 401.
    """
    ip_address, user_agent = get_client_info(request)
    session = await coordinator.login(
        body.email,
        body.password,
        device_info=user_agent,
        ip_address=ip_address,
    )

    _set_auth_cookie(response, ACCESS_TOKEN_COOKIE, session.access_token.token, settings.ACCESS_TOKEN_MAX_AGE)
    _set_auth_cookie(response, REFRESH_TOKEN_COOKIE, session.refresh_token.token, settings.REFRESH_TOKEN_MAX_AGE)

    return AuthResponse(message="Login successful", user=UserResponse.model_validate(session.user))


@router.post("/refresh-token", response_model=AuthResponse)
async def refresh_token(
    request: Request,
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_TOKEN_COOKIE),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """
    Issue a new access token from the refresh token cookie.

    The refresh token itself is kept. On any failure both cookies are
    cleared and a generic 401 is returned.
    """
    ip_address, user_agent = get_client_info(request)
    try:
        refreshed = await coordinator.refresh(
            refresh_cookie,
            device_info=user_agent,
            ip_address=ip_address,
        )
    except UnauthenticatedError as exc:
        return _failure_clearing_cookies(request, exc)

    _set_auth_cookie(response, ACCESS_TOKEN_COOKIE, refreshed.access_token.token, settings.ACCESS_TOKEN_MAX_AGE)
    return AuthResponse(message="Token refreshed", user=UserResponse.model_validate(refreshed.user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_TOKEN_COOKIE),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """
    Revoke the current refresh token (if any) and clear both cookies.

    Safe to call when already logged out.
    """
    ip_address, user_agent = get_client_info(request)
    try:
        await coordinator.logout(refresh_cookie, device_info=user_agent, ip_address=ip_address)
    except StoreUnavailableError as exc:
        # The client still drops its cookies; the failure stays visible as 503
        return _failure_clearing_cookies(request, exc)

    _clear_auth_cookies(response)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    request: Request,
    response: Response,
    claims: Claims = Depends(get_current_claims),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Revoke every session of the current user, including this one."""
    ip_address, user_agent = get_client_info(request)
    count = await coordinator.logout_all(claims.user_id, device_info=user_agent, ip_address=ip_address)

    _clear_auth_cookies(response)
    return MessageResponse(message=f"Logged out from {count} session(s)")


@router.get("/me", response_model=UserDetailResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    claims: Claims = Depends(get_current_claims),
    coordinator: SessionCoordinator = Depends(get_session_coordinator),
):
    """Active login sessions of the current user."""
    sessions = await coordinator.active_sessions(claims.user_id)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=len(sessions),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    request: Request,
    accounts: AccountService = Depends(get_account_service),
):
    """Create a customer account. The client logs in separately."""
    ip_address, user_agent = get_client_info(request)
    user = await accounts.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        phone=body.phone,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return AuthResponse(message="Registration successful", user=UserResponse.model_validate(user))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    accounts: AccountService = Depends(get_account_service),
):
    """Always answers the same message, whether or not the account exists."""
    ip_address, user_agent = get_client_info(request)
    await accounts.request_password_reset(body.email, ip_address=ip_address, user_agent=user_agent)
    return MessageResponse(message=PASSWORD_RESET_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    request: Request,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
):
    ip_address, user_agent = get_client_info(request)
    await accounts.reset_password(body.token, body.password, ip_address=ip_address, user_agent=user_agent)

    # Every session was revoked, this browser's included
    _clear_auth_cookies(response)
    return MessageResponse(message="Password has been reset. Please log in again")


@router.post("/request-phone-verification", response_model=MessageResponse)
async def request_phone_verification(
    body: PhoneVerificationRequest,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.request_phone_verification(current_user, body.phone)
    return MessageResponse(message="Verification code sent")


@router.post("/verify-phone-code", response_model=AuthResponse)
async def verify_phone_code(
    body: VerifyPhoneCodeRequest,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.verify_phone_code(current_user, body.code)
    return AuthResponse(message="Phone number verified", user=UserResponse.model_validate(user))
