"""Subscription endpoints. Users manage their own; admins can see and edit all."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser, get_current_user, require_admin
from agentmart.core.exceptions import SubscriptionNotFoundError
from agentmart.database import get_db
from agentmart.schemas.common import page_count
from agentmart.schemas.subscription import (
    SUBSCRIPTION_STATUS_PATTERN,
    SubscriptionCreateRequest,
    SubscriptionListResponse,
    SubscriptionResponse,
    SubscriptionUpdateRequest,
)
from agentmart.services import subscription_service

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("", response_model=SubscriptionResponse, status_code=201)
async def create_subscription(
    req: SubscriptionCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription = await subscription_service.create_subscription(db, current_user.id, req)
    return _subscription_to_response(subscription)


@router.get("", response_model=SubscriptionListResponse)
async def list_subscriptions(
    user_id: str | None = Query(None),
    agent_id: str | None = Query(None),
    status: str | None = Query(None, pattern=SUBSCRIPTION_STATUS_PATTERN),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    if not current_user.is_admin:
        user_id = current_user.id
    subscriptions, total = await subscription_service.list_subscriptions(
        db, page, limit, user_id=user_id, agent_id=agent_id, status=status
    )
    return SubscriptionListResponse(
        items=[_subscription_to_response(s) for s in subscriptions],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.post("/expire")
async def expire_subscriptions(
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    expired = await subscription_service.expire_subscriptions(db)
    return {"expired": expired}


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription = await subscription_service.get_subscription(db, subscription_id)
    if not current_user.is_admin and subscription.user_id != current_user.id:
        raise SubscriptionNotFoundError(subscription_id)
    return _subscription_to_response(subscription)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    subscription = await subscription_service.cancel_subscription(db, subscription_id, current_user)
    return _subscription_to_response(subscription)


@router.patch("/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(
    subscription_id: str,
    req: SubscriptionUpdateRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    subscription = await subscription_service.update_subscription(db, subscription_id, req)
    return _subscription_to_response(subscription)


@router.delete("/{subscription_id}")
async def delete_subscription(
    subscription_id: str,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    await subscription_service.delete_subscription(db, subscription_id)
    return {"status": "deleted"}


def _subscription_to_response(subscription) -> SubscriptionResponse:
    return SubscriptionResponse(
        id=subscription.id,
        user_id=subscription.user_id,
        agent_id=subscription.agent_id,
        status=subscription.status,
        start_date=subscription.start_date,
        end_date=subscription.end_date,
        renewal_date=subscription.renewal_date,
        created_at=subscription.created_at,
        updated_at=subscription.updated_at,
    )
