"""Payment records attached to orders.

A payment starts ``PENDING`` and may move exactly once, to ``SUCCESS`` or
``FAILED``.
"""
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.exceptions import (
    ConflictError,
    InvalidPaymentStateError,
    PaymentNotFoundError,
    ValidationError,
)
from agentmart.models.order import Order
from agentmart.models.payment import PAYMENT_PENDING, Payment
from agentmart.models.user import User
from agentmart.schemas.payment import PaymentCreateRequest

logger = logging.getLogger(__name__)


async def create_payment(db: AsyncSession, req: PaymentCreateRequest) -> Payment:
    if await db.get(Order, req.order_id) is None:
        raise ValidationError("Order not found")
    if await db.get(User, req.user_id) is None:
        raise ValidationError("User not found")

    existing = await db.execute(select(Payment.id).where(Payment.transaction_id == req.transaction_id))
    if existing.first() is not None:
        raise ConflictError(f"Payment with transaction ID {req.transaction_id} already exists")

    payment = Payment(
        order_id=req.order_id,
        user_id=req.user_id,
        payment_gateway=req.payment_gateway,
        payment_status=req.payment_status,
        amount=Decimal(str(req.amount)),
        transaction_id=req.transaction_id,
    )
    db.add(payment)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f"Payment with transaction ID {req.transaction_id} already exists") from exc
    await db.refresh(payment)
    return payment


async def get_payment(db: AsyncSession, payment_id: str) -> Payment:
    result = await db.execute(select(Payment).where(Payment.id == payment_id))
    payment = result.scalar_one_or_none()
    if not payment:
        raise PaymentNotFoundError(payment_id)
    return payment


async def get_payment_by_transaction_id(db: AsyncSession, transaction_id: str) -> Payment:
    result = await db.execute(select(Payment).where(Payment.transaction_id == transaction_id))
    payment = result.scalar_one_or_none()
    if not payment:
        raise PaymentNotFoundError(transaction_id, by_transaction=True)
    return payment


async def list_payments(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    user_id: str | None = None,
    order_id: str | None = None,
    payment_status: str | None = None,
    payment_gateway: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> tuple[list[Payment], int]:
    conditions = []
    if user_id:
        conditions.append(Payment.user_id == user_id)
    if order_id:
        conditions.append(Payment.order_id == order_id)
    if payment_status:
        conditions.append(Payment.payment_status == payment_status)
    if payment_gateway:
        conditions.append(Payment.payment_gateway == payment_gateway)
    if date_from is not None:
        conditions.append(Payment.created_at >= date_from)
    if date_to is not None:
        conditions.append(Payment.created_at <= date_to)

    total = (await db.execute(select(func.count(Payment.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(Payment)
        .where(*conditions)
        .order_by(Payment.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def update_payment_status(db: AsyncSession, payment_id: str, status: str) -> Payment:
    """Move a pending payment to its final status."""
    payment = await get_payment(db, payment_id)
    if payment.payment_status != PAYMENT_PENDING:
        raise InvalidPaymentStateError(payment.payment_status, PAYMENT_PENDING)

    payment.payment_status = status
    await db.commit()
    await db.refresh(payment)
    logger.info("Payment %s status %s -> %s", payment.id, PAYMENT_PENDING, status)
    return payment


async def delete_payment(db: AsyncSession, payment_id: str) -> None:
    payment = await get_payment(db, payment_id)
    await db.delete(payment)
    await db.commit()
