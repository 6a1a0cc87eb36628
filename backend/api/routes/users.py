"""User administration and self-service profile routes."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_account_service, get_current_claims, get_current_user, require_admin
from db.database import get_db
from models.user import User
from schemas.common import ErrorResponse, MessageResponse, PaginatedResponse
from schemas.user import AdminUserUpdate, ProfileUpdate, UserDetailResponse
from services.accounts import AccountService
from services.authorization import gate
from services.errors import BadRequestError, ForbiddenError, NotFoundError
from services.stores import UserStore
from services.tokens import Claims

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
logger = logging.getLogger(__name__)

# Only admins may touch these, even on their own account
_PRIVILEGED_FIELDS = {"user_type", "is_active"}


async def _load_authorized_user(user_id: int, claims: Claims, db: AsyncSession) -> User:
    target = await UserStore(db).get_by_id(user_id)
    gate.check(claims, owner_id=target.id if target is not None else None)
    if target is None:
        raise NotFoundError("User not found")
    return target


@router.get("", response_model=PaginatedResponse[UserDetailResponse])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    _admin: Claims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users, total = await UserStore(db).list_users(skip=skip, limit=limit)
    return PaginatedResponse[UserDetailResponse](
        items=[UserDetailResponse.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/profile", response_model=UserDetailResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserDetailResponse)
async def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.update_user(current_user, body.model_dump(exclude_unset=True))


@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: int,
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    """Admin, or the account owner."""
    return await _load_authorized_user(user_id, claims, db)


@router.put("/{user_id}", response_model=UserDetailResponse)
async def update_user(
    user_id: int,
    body: AdminUserUpdate,
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
    accounts: AccountService = Depends(get_account_service),
):
    target = await _load_authorized_user(user_id, claims, db)
    changes = body.model_dump(exclude_unset=True)

    if not claims.is_admin and _PRIVILEGED_FIELDS & changes.keys():
        raise ForbiddenError(reason="non-admin tried to change role or active flag")

    return await accounts.update_user(target, changes)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    admin: Claims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    accounts: AccountService = Depends(get_account_service),
):
    """Hard delete (admin only). Sessions and orders go with the account."""
    if user_id == admin.user_id:
        raise BadRequestError("Admins cannot delete their own account")

    target = await UserStore(db).get_by_id(user_id)
    if target is None:
        raise NotFoundError("User not found")

    await accounts.delete_user(target)
    return MessageResponse(message="User deleted")
