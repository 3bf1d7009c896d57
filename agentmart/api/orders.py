"""Order endpoints. Admins manage every order; users can only read their own."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser, get_current_user, require_admin
from agentmart.core.exceptions import OrderNotFoundError
from agentmart.database import get_db
from agentmart.schemas.common import page_count
from agentmart.schemas.order import (
    ORDER_STATUS_PATTERN,
    ORDER_TYPE_PATTERN,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderUpdateRequest,
)
from agentmart.services import order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    req: OrderCreateRequest,
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
):
    order = await order_service.create_order(db, req, created_by=admin.id)
    return _order_to_response(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    payment_status: str | None = Query(None, pattern=ORDER_STATUS_PATTERN),
    order_type: str | None = Query(None, pattern=ORDER_TYPE_PATTERN),
    user_id: str | None = Query(None),
    agent_id: str | None = Query(None),
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    q: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    # Non-admins are pinned to their own orders.
    if not current_user.is_admin:
        user_id = current_user.id
    orders, total = await order_service.list_orders(
        db,
        page,
        limit,
        payment_status=payment_status,
        order_type=order_type,
        user_id=user_id,
        agent_id=agent_id,
        min_price=min_price,
        max_price=max_price,
        query=q,
    )
    return OrderListResponse(
        items=[_order_to_response(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    order = await order_service.get_order(db, order_id)
    if not current_user.is_admin and order.user_id != current_user.id:
        raise OrderNotFoundError(order_id)
    return _order_to_response(order)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str,
    req: OrderUpdateRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    order = await order_service.update_order(db, order_id, req)
    return _order_to_response(order)


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    await order_service.delete_order(db, order_id)
    return {"status": "deleted"}


def _order_to_response(order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        agent_id=order.agent_id,
        payment_status=order.payment_status,
        order_type=order.order_type,
        price=float(order.price),
        transaction_id=order.transaction_id,
        created_by=order.created_by,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )
