"""Response envelopes shared by every router."""

from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a skip/limit listing plus the unpaged total."""

    items: List[T]
    total: int = Field(..., ge=0)
    skip: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)

    model_config = {"from_attributes": True}


class ErrorResponse(BaseModel):
    """
    Body of every failed request except validation errors.

    `detail` is the generic public message of the error class; the reason a
    login or refresh actually failed is never included.
    """

    detail: str
    code: Optional[str] = Field(None, description="Stable machine-readable error code")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"detail": "Invalid credentials", "code": "INVALID_CREDENTIALS"},
                {"detail": "Authentication required", "code": "UNAUTHENTICATED"},
                {"detail": "Forbidden", "code": "FORBIDDEN"},
                {"detail": "Service temporarily unavailable", "code": "STORE_UNAVAILABLE"},
            ]
        }
    }


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
