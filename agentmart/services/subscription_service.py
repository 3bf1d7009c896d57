"""Agent subscriptions: create (optionally paid in tokens), cancel, expire."""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser
from agentmart.core.exceptions import (
    AgentNotFoundError,
    ConflictError,
    ForbiddenError,
    SubscriptionNotFoundError,
    ValidationError,
)
from agentmart.models.agent import Agent
from agentmart.models.order import ORDER_COMPLETED, ORDER_SUBSCRIPTION, Order
from agentmart.models.subscription import (
    SUBSCRIPTION_ACTIVE,
    SUBSCRIPTION_CANCELLED,
    SUBSCRIPTION_EXPIRED,
    Subscription,
)
from agentmart.models.user import User
from agentmart.schemas.subscription import SubscriptionCreateRequest, SubscriptionUpdateRequest
from agentmart.services import token_service

logger = logging.getLogger(__name__)

SUBSCRIPTION_PERIOD = timedelta(days=30)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def _active_subscription_exists(db: AsyncSession, user_id: str, agent_id: str) -> bool:
    result = await db.execute(
        select(Subscription.id).where(
            Subscription.user_id == user_id,
            Subscription.agent_id == agent_id,
            Subscription.status == SUBSCRIPTION_ACTIVE,
        )
    )
    return result.first() is not None


async def create_subscription(
    db: AsyncSession, user_id: str, req: SubscriptionCreateRequest
) -> Subscription:
    """Subscribe ``user_id`` to an agent for one period.

    With ``pay_with_tokens`` the subscription price is debited from the token
    balance, and a completed SUBSCRIPTION order plus a SPENT ledger entry are
    written in the same commit as the subscription.
    """
    agent = await db.get(Agent, req.agent_id)
    if agent is None:
        raise AgentNotFoundError(req.agent_id)
    if agent.subscription_price is None:
        raise ValidationError("Agent does not offer a subscription")
    if await db.get(User, user_id) is None:
        raise ValidationError("User not found")
    if await _active_subscription_exists(db, user_id, agent.id):
        raise ConflictError("You already have an active subscription for this agent")

    now = datetime.now(timezone.utc)
    subscription = Subscription(
        id=str(uuid.uuid4()),
        user_id=user_id,
        agent_id=agent.id,
        status=SUBSCRIPTION_ACTIVE,
        start_date=now,
        renewal_date=now + SUBSCRIPTION_PERIOD,
    )

    if req.pay_with_tokens:
        order = Order(
            id=str(uuid.uuid4()),
            user_id=user_id,
            agent_id=agent.id,
            payment_status=ORDER_COMPLETED,
            order_type=ORDER_SUBSCRIPTION,
            price=Decimal(str(agent.subscription_price)),
            transaction_id=f"sub_{subscription.id}",
            created_by=user_id,
        )
        # Debit before staging anything else; a short balance leaves nothing to undo.
        await token_service.debit_tokens(
            db,
            user_id,
            token_service.tokens_for_price(agent.subscription_price),
            agent_id=agent.id,
            order_id=order.id,
        )
        db.add(order)

    db.add(subscription)
    try:
        await db.commit()
    except IntegrityError as exc:
        # A concurrent request activated the same subscription first.
        await db.rollback()
        raise ConflictError("You already have an active subscription for this agent") from exc
    await db.refresh(subscription)
    logger.info(
        "User %s subscribed to agent %s (tokens=%s)", user_id, agent.id, req.pay_with_tokens
    )
    return subscription


async def get_subscription(db: AsyncSession, subscription_id: str) -> Subscription:
    result = await db.execute(select(Subscription).where(Subscription.id == subscription_id))
    subscription = result.scalar_one_or_none()
    if not subscription:
        raise SubscriptionNotFoundError(subscription_id)
    return subscription


async def list_subscriptions(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    user_id: str | None = None,
    agent_id: str | None = None,
    status: str | None = None,
) -> tuple[list[Subscription], int]:
    conditions = []
    if user_id:
        conditions.append(Subscription.user_id == user_id)
    if agent_id:
        conditions.append(Subscription.agent_id == agent_id)
    if status:
        conditions.append(Subscription.status == status)

    total = (await db.execute(select(func.count(Subscription.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(Subscription)
        .where(*conditions)
        .order_by(Subscription.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def cancel_subscription(
    db: AsyncSession, subscription_id: str, actor: CurrentUser
) -> Subscription:
    """Cancel an active subscription. Allowed for the subscriber or an admin."""
    subscription = await get_subscription(db, subscription_id)
    if subscription.user_id != actor.id and not actor.is_admin:
        raise ForbiddenError("You can only cancel your own subscriptions")
    if subscription.status != SUBSCRIPTION_ACTIVE:
        raise ValidationError(f"Subscription is {subscription.status}, not {SUBSCRIPTION_ACTIVE}")

    subscription.status = SUBSCRIPTION_CANCELLED
    subscription.end_date = datetime.now(timezone.utc)
    subscription.renewal_date = None
    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription %s cancelled by %s", subscription.id, actor.id)
    return subscription


async def update_subscription(
    db: AsyncSession, subscription_id: str, req: SubscriptionUpdateRequest
) -> Subscription:
    subscription = await get_subscription(db, subscription_id)
    updates = req.model_dump(exclude_unset=True, exclude_none=True)

    end_date = updates.get("end_date")
    if end_date and _as_utc(end_date) < _as_utc(subscription.start_date):
        raise ValidationError("end_date cannot be before start_date")

    for field, value in updates.items():
        setattr(subscription, field, value)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("User already has an active subscription for this agent") from exc
    await db.refresh(subscription)
    return subscription


async def delete_subscription(db: AsyncSession, subscription_id: str) -> None:
    subscription = await get_subscription(db, subscription_id)
    await db.delete(subscription)
    await db.commit()


async def expire_subscriptions(db: AsyncSession, now: datetime | None = None) -> int:
    """Mark active subscriptions whose end date has passed as EXPIRED. Returns the count."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Subscription).where(
            Subscription.status == SUBSCRIPTION_ACTIVE,
            Subscription.end_date.is_not(None),
            Subscription.end_date <= now,
        )
    )
    due = list(result.scalars().all())
    for subscription in due:
        subscription.status = SUBSCRIPTION_EXPIRED
        subscription.renewal_date = None
    await db.commit()
    if due:
        logger.info("Expired %d subscriptions", len(due))
    return len(due)
