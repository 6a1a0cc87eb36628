"""Order read access (owner or admin) and admin status updates."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_claims, require_admin
from db.database import get_db
from models.user import UserType
from schemas.common import ErrorResponse, PaginatedResponse
from schemas.order import OrderResponse, OrderStatusUpdate
from services.authorization import gate
from services.errors import NotFoundError
from services.stores import OrderStore
from services.tokens import Claims

router = APIRouter(
    prefix="/orders",
    tags=["orders"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
logger = logging.getLogger(__name__)


@router.get("", response_model=PaginatedResponse[OrderResponse])
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    """Own orders; admins see every order."""
    sees_all = gate.allows(claims, required_role=UserType.ADMIN)
    orders, total = await OrderStore(db).list_orders(
        user_id=None if sees_all else claims.user_id,
        skip=skip,
        limit=limit,
    )
    return PaginatedResponse[OrderResponse](
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    claims: Claims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderStore(db).get_by_id(order_id)
    gate.check(claims, owner_id=order.user_id if order is not None else None)
    if order is None:
        raise NotFoundError("Order not found")
    return order


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    admin: Claims = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    store = OrderStore(db)
    order = await store.get_by_id(order_id)
    if order is None:
        raise NotFoundError("Order not found")

    order.status = body.status
    await store.flush()
    await store.commit()
    await store.refresh(order)
    logger.info("Admin %s set order %s to %s", admin.user_id, order.id, body.status.value)
    return order
