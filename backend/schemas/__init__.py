from .common import ErrorResponse, HealthResponse, MessageResponse, PaginatedResponse
from .order import OrderResponse, OrderStatusUpdate
from .user import (
    AdminUserUpdate,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    PhoneVerificationRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
    SessionListResponse,
    SessionResponse,
    UserDetailResponse,
    UserResponse,
    VerifyPhoneCodeRequest,
)

__all__ = [
    "AdminUserUpdate",
    "AuthResponse",
    "ErrorResponse",
    "ForgotPasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "OrderResponse",
    "OrderStatusUpdate",
    "PaginatedResponse",
    "PhoneVerificationRequest",
    "ProfileUpdate",
    "RegisterRequest",
    "ResetPasswordRequest",
    "SessionListResponse",
    "SessionResponse",
    "UserDetailResponse",
    "UserResponse",
    "VerifyPhoneCodeRequest",
]
