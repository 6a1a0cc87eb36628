from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from models.user import UserType


def _strip_or_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class LoginRequest(BaseModel):
    """Login request. The email is not format-checked so every bad login gets the same 401."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=256)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("phone", mode="before")
    @classmethod
    def normalize_phone(cls, value):
        return _strip_or_none(value)


class UserResponse(BaseModel):
    """Public user shape returned by the auth endpoints."""

    id: int
    name: str
    email: str
    role: UserType

    model_config = {"from_attributes": True}


class UserDetailResponse(UserResponse):
    first_name: str
    last_name: str
    phone: Optional[str] = None
    phone_verified: bool
    email_verified: bool
    is_active: bool
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    message: str
    user: UserResponse


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account."""

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=32)
    password: Optional[str] = Field(default=None, min_length=8, max_length=256)

    @field_validator("first_name", "last_name", "phone", mode="before")
    @classmethod
    def normalize_text(cls, value):
        return _strip_or_none(value)


class AdminUserUpdate(ProfileUpdate):
    """Admins may additionally change the role and the active flag."""

    user_type: Optional[UserType] = None
    is_active: Optional[bool] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    password: str = Field(..., min_length=8, max_length=256)


class PhoneVerificationRequest(BaseModel):
    phone: Optional[str] = Field(default=None, max_length=32)

    @field_validator("phone", mode="before")
    @classmethod
    def normalize_phone(cls, value):
        return _strip_or_none(value)


class VerifyPhoneCodeRequest(BaseModel):
    code: str = Field(..., pattern=r"^\s*\d{6}\s*$")


class SessionResponse(BaseModel):
    """One active login session (refresh token record); the token itself is never returned."""

    id: int
    device_info: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    expires_at: datetime

    model_config = {"from_attributes": True}


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int
