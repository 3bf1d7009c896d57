"""Checkout fulfillment: turn a paid Stripe session into ownership and orders.

The whole grant happens in one database transaction, and a
``FulfillmentRecord`` keyed by the session id is written in that same
transaction. Replaying the success redirect or a duplicate webhook
delivery therefore finds the record and writes nothing.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.exceptions import FulfillmentError
from agentmart.models.fulfillment import FulfillmentRecord
from agentmart.models.order import ORDER_COMPLETED, ORDER_ONE_TIME, Order
from agentmart.models.payment import GATEWAY_STRIPE, PAYMENT_SUCCESS, Payment
from agentmart.models.user import User
from agentmart.services import agent_service
from agentmart.services.stripe_service import StripeCheckoutService, decode_session_metadata

logger = logging.getLogger(__name__)

FULFILLED = "fulfilled"
PARTIAL = "partial"
ALREADY_FULFILLED = "already_fulfilled"
FAILED = "failed"


@dataclass
class FulfillmentResult:
    status: str
    session_id: str
    user_id: str | None = None
    granted_agent_ids: list[str] = field(default_factory=list)
    skipped_agent_ids: list[str] = field(default_factory=list)
    order_ids: list[str] = field(default_factory=list)
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != FAILED

    def to_dict(self) -> dict:
        return asdict(self)


def order_transaction_id(payment_intent_id: str, agent_id: str) -> str:
    """Per-agent transaction id; one payment intent can pay for several agents."""
    return f"{payment_intent_id}:{agent_id}"


def _from_record(record: FulfillmentRecord) -> FulfillmentResult:
    return FulfillmentResult(
        status=ALREADY_FULFILLED,
        session_id=record.session_id,
        user_id=record.user_id,
        granted_agent_ids=json.loads(record.granted_agent_ids or "[]"),
        skipped_agent_ids=json.loads(record.skipped_agent_ids or "[]"),
        order_ids=json.loads(record.order_ids or "[]"),
    )


async def get_fulfillment_record(db: AsyncSession, session_id: str) -> FulfillmentRecord | None:
    result = await db.execute(
        select(FulfillmentRecord).where(FulfillmentRecord.session_id == session_id)
    )
    return result.scalar_one_or_none()


async def reconcile_checkout_session(
    db: AsyncSession,
    checkout: StripeCheckoutService,
    session_id: str,
) -> tuple[FulfillmentResult, dict | None]:
    """Reconcile one checkout session. Returns (result, provider session).

    The provider session is None when the session was already fulfilled.
    """
    record = await get_fulfillment_record(db, session_id)
    if record is not None:
        logger.info("Checkout session %s already fulfilled; skipping", session_id)
        return _from_record(record), None

    session = await checkout.retrieve_session(session_id)
    return await fulfill_session(db, session), session


async def fulfill_session(db: AsyncSession, session: dict) -> FulfillmentResult:
    """Grant the agents paid for in ``session`` and record the orders."""
    session_id = session["id"]

    if session.get("payment_status") != "paid":
        logger.warning(
            "Checkout session %s not paid (payment_status=%s)", session_id, session.get("payment_status")
        )
        return FulfillmentResult(status=FAILED, session_id=session_id, reason="session_not_paid")

    user_id, agent_ids = decode_session_metadata(session)
    if not user_id or not agent_ids:
        logger.warning("Checkout session %s is missing buyer or agent metadata", session_id)
        return FulfillmentResult(
            status=FAILED, session_id=session_id, user_id=user_id, reason="missing_metadata"
        )

    try:
        return await _grant_and_record(db, session, user_id, agent_ids)
    except IntegrityError:
        # A concurrent delivery of the same session committed first.
        await db.rollback()
        record = await get_fulfillment_record(db, session_id)
        if record is not None:
            logger.info("Checkout session %s fulfilled concurrently", session_id)
            return _from_record(record)
        logger.exception("Integrity error while fulfilling checkout session %s", session_id)
        raise FulfillmentError()
    except Exception:
        await db.rollback()
        logger.exception("Error processing successful payment for session %s", session_id)
        raise FulfillmentError()


async def _grant_and_record(
    db: AsyncSession, session: dict, user_id: str, agent_ids: list[str]
) -> FulfillmentResult:
    session_id = session["id"]
    buyer = await db.get(User, user_id)
    if buyer is None:
        logger.warning("Checkout session %s references unknown buyer %s", session_id, user_id)
        return FulfillmentResult(
            status=FAILED, session_id=session_id, user_id=user_id, reason="buyer_not_found"
        )

    agents = await agent_service.get_agents_by_ids(db, agent_ids)
    found = {agent.id: agent for agent in agents}
    ordered = [found[agent_id] for agent_id in agent_ids if agent_id in found]
    skipped = [agent_id for agent_id in agent_ids if agent_id not in found]
    if not ordered:
        logger.warning("Checkout session %s: none of %s exist", session_id, agent_ids)
        return FulfillmentResult(
            status=FAILED,
            session_id=session_id,
            user_id=user_id,
            skipped_agent_ids=skipped,
            reason="no_agents_found",
        )

    expected = sum((Decimal(str(agent.price)) for agent in ordered), Decimal("0"))
    paid = Decimal(session.get("amount_total") or 0) / 100
    if paid < expected:
        logger.warning(
            "Checkout session %s paid %s but agents cost %s; not fulfilling", session_id, paid, expected
        )
        return FulfillmentResult(
            status=FAILED,
            session_id=session_id,
            user_id=user_id,
            skipped_agent_ids=skipped,
            reason="amount_mismatch",
        )

    owned_ids = {agent.id for agent in buyer.owned_agents}
    for agent in ordered:
        if agent.id not in owned_ids:
            buyer.owned_agents.append(agent)
            owned_ids.add(agent.id)

    payment_intent_id = session.get("payment_intent") or session_id
    orders: list[Order] = []
    for agent in ordered:
        tx_id = order_transaction_id(payment_intent_id, agent.id)
        order = Order(
            user_id=buyer.id,
            agent_id=agent.id,
            payment_status=ORDER_COMPLETED,
            order_type=ORDER_ONE_TIME,
            price=Decimal(str(agent.price)),
            transaction_id=tx_id,
            created_by=buyer.id,
        )
        db.add(order)
        orders.append(order)
    await db.flush()

    for order in orders:
        db.add(Payment(
            order_id=order.id,
            user_id=buyer.id,
            payment_gateway=GATEWAY_STRIPE,
            payment_status=PAYMENT_SUCCESS,
            amount=order.price,
            transaction_id=order.transaction_id,
        ))

    status = PARTIAL if skipped else FULFILLED
    result = FulfillmentResult(
        status=status,
        session_id=session_id,
        user_id=buyer.id,
        granted_agent_ids=[agent.id for agent in ordered],
        skipped_agent_ids=skipped,
        order_ids=[order.id for order in orders],
    )
    db.add(FulfillmentRecord(
        session_id=session_id,
        user_id=buyer.id,
        payment_intent_id=session.get("payment_intent"),
        status=status,
        granted_agent_ids=json.dumps(result.granted_agent_ids),
        skipped_agent_ids=json.dumps(result.skipped_agent_ids),
        order_ids=json.dumps(result.order_ids),
    ))
    await db.commit()

    if skipped:
        logger.warning("Checkout session %s skipped unknown agents: %s", session_id, skipped)
    logger.info(
        "Checkout session %s fulfilled for user %s: %d orders", session_id, buyer.id, len(orders)
    )
    return result
