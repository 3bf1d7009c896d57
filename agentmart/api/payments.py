"""Payment endpoints. Admins manage every payment; users can only read their own."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser, get_current_user, require_admin
from agentmart.core.exceptions import PaymentNotFoundError
from agentmart.database import get_db
from agentmart.schemas.common import page_count
from agentmart.schemas.payment import (
    GATEWAY_PATTERN,
    PAYMENT_STATUS_PATTERN,
    PaymentCreateRequest,
    PaymentListResponse,
    PaymentResponse,
    PaymentStatusUpdateRequest,
)
from agentmart.services import payment_service

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("", response_model=PaymentResponse, status_code=201)
async def create_payment(
    req: PaymentCreateRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    payment = await payment_service.create_payment(db, req)
    return _payment_to_response(payment)


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    user_id: str | None = Query(None),
    order_id: str | None = Query(None),
    payment_status: str | None = Query(None, pattern=PAYMENT_STATUS_PATTERN),
    payment_gateway: str | None = Query(None, pattern=GATEWAY_PATTERN),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    if not current_user.is_admin:
        user_id = current_user.id
    payments, total = await payment_service.list_payments(
        db,
        page,
        limit,
        user_id=user_id,
        order_id=order_id,
        payment_status=payment_status,
        payment_gateway=payment_gateway,
        date_from=date_from,
        date_to=date_to,
    )
    return PaymentListResponse(
        items=[_payment_to_response(p) for p in payments],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/transaction/{transaction_id}", response_model=PaymentResponse)
async def get_payment_by_transaction(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    payment = await payment_service.get_payment_by_transaction_id(db, transaction_id)
    if not current_user.is_admin and payment.user_id != current_user.id:
        raise PaymentNotFoundError(transaction_id, by_transaction=True)
    return _payment_to_response(payment)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    payment = await payment_service.get_payment(db, payment_id)
    if not current_user.is_admin and payment.user_id != current_user.id:
        raise PaymentNotFoundError(payment_id)
    return _payment_to_response(payment)


@router.patch("/{payment_id}/status", response_model=PaymentResponse)
async def update_payment_status(
    payment_id: str,
    req: PaymentStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    payment = await payment_service.update_payment_status(db, payment_id, req.payment_status)
    return _payment_to_response(payment)


@router.delete("/{payment_id}")
async def delete_payment(
    payment_id: str,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    await payment_service.delete_payment(db, payment_id)
    return {"status": "deleted"}


def _payment_to_response(payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        order_id=payment.order_id,
        user_id=payment.user_id,
        payment_gateway=payment.payment_gateway,
        payment_status=payment.payment_status,
        amount=float(payment.amount),
        transaction_id=payment.transaction_id,
        created_at=payment.created_at,
    )
