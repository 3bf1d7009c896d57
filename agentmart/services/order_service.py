import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.exceptions import ConflictError, OrderNotFoundError, ValidationError
from agentmart.models.agent import Agent
from agentmart.models.order import Order
from agentmart.models.user import User
from agentmart.schemas.order import OrderCreateRequest, OrderUpdateRequest

logger = logging.getLogger(__name__)


async def _transaction_id_taken(db: AsyncSession, transaction_id: str) -> bool:
    result = await db.execute(select(Order.id).where(Order.transaction_id == transaction_id))
    return result.first() is not None


async def create_order(
    db: AsyncSession, req: OrderCreateRequest, created_by: str | None = None
) -> Order:
    """Create an order. The transaction id must be globally unique."""
    if await db.get(User, req.user_id) is None:
        raise ValidationError("User not found")
    if req.agent_id and await db.get(Agent, req.agent_id) is None:
        raise ValidationError("Agent not found")
    if await _transaction_id_taken(db, req.transaction_id):
        raise ConflictError(f"Order with transaction ID {req.transaction_id} already exists")

    order = Order(
        user_id=req.user_id,
        agent_id=req.agent_id,
        payment_status=req.payment_status,
        order_type=req.order_type,
        price=Decimal(str(req.price)),
        transaction_id=req.transaction_id,
        created_by=created_by,
    )
    db.add(order)
    try:
        await db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent insert of the same transaction id.
        await db.rollback()
        raise ConflictError(f"Order with transaction ID {req.transaction_id} already exists") from exc
    await db.refresh(order)
    return order


async def get_order(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(select(Order).where(Order.id == order_id))
    order = result.scalar_one_or_none()
    if not order:
        raise OrderNotFoundError(order_id)
    return order


async def list_orders(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    payment_status: str | None = None,
    order_type: str | None = None,
    user_id: str | None = None,
    agent_id: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    query: str | None = None,
) -> tuple[list[Order], int]:
    """List orders with equality / range / transaction-id substring filters."""
    conditions = []
    if payment_status:
        conditions.append(Order.payment_status == payment_status)
    if order_type:
        conditions.append(Order.order_type == order_type)
    if user_id:
        conditions.append(Order.user_id == user_id)
    if agent_id:
        conditions.append(Order.agent_id == agent_id)
    if min_price is not None:
        conditions.append(Order.price >= min_price)
    if max_price is not None:
        conditions.append(Order.price <= max_price)
    if query:
        conditions.append(Order.transaction_id.ilike(f"%{query}%"))

    total = (await db.execute(select(func.count(Order.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(Order)
        .where(*conditions)
        .order_by(Order.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def update_order(db: AsyncSession, order_id: str, req: OrderUpdateRequest) -> Order:
    order = await get_order(db, order_id)
    updates = req.model_dump(exclude_unset=True, exclude_none=True)

    new_tx = updates.get("transaction_id")
    if new_tx and new_tx != order.transaction_id and await _transaction_id_taken(db, new_tx):
        raise ConflictError(f"Order with transaction ID {new_tx} already exists")

    for field, value in updates.items():
        if field == "price":
            value = Decimal(str(value))
        setattr(order, field, value)

    if "payment_status" in updates:
        logger.info("Order %s status -> %s", order.id, updates["payment_status"])
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f"Order with transaction ID {new_tx} already exists") from exc
    await db.refresh(order)
    return order


async def delete_order(db: AsyncSession, order_id: str) -> None:
    order = await get_order(db, order_id)
    await db.delete(order)
    await db.commit()
