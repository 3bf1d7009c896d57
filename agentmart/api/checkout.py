"""Hosted-checkout endpoints.

The buyer starts a Stripe Checkout Session here, Stripe redirects back to the
success endpoint, and the success endpoint reconciles the paid session into
agent ownership and orders.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser, get_current_user
from agentmart.core.exceptions import ValidationError
from agentmart.database import get_db
from agentmart.schemas.checkout import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    CheckoutSuccessResponse,
    FulfillmentResponse,
)
from agentmart.services import agent_service
from agentmart.services.fulfillment_service import reconcile_checkout_session
from agentmart.services.stripe_service import StripeCheckoutService, get_checkout_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/pay", tags=["checkout"])


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse, status_code=201)
async def create_checkout_session(
    req: CheckoutSessionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    checkout: StripeCheckoutService = Depends(get_checkout_service),
):
    # The charged amount must match the catalog price of what is being bought.
    total = await agent_service.quote_agents(db, req.agent_ids)
    if Decimal(str(req.amount)).quantize(Decimal("0.01")) != total:
        raise ValidationError(f"Amount {req.amount} does not match the agents' total price {total}")
    try:
        session = await checkout.create_checkout_session(
            req.amount, list(dict.fromkeys(req.agent_ids)), current_user.id
        )
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return CheckoutSessionResponse(
        id=session["id"],
        url=session.get("url"),
        amount_total=session.get("amount_total"),
        currency=session.get("currency"),
    )


@router.get("/success/checkout/session", response_model=CheckoutSuccessResponse)
async def checkout_success(
    session_id: str = Query(..., min_length=1, max_length=255),
    db: AsyncSession = Depends(get_db),
    checkout: StripeCheckoutService = Depends(get_checkout_service),
):
    result, session = await reconcile_checkout_session(db, checkout, session_id)
    return CheckoutSuccessResponse(
        success=result.ok,
        fulfillment=FulfillmentResponse(**result.to_dict()),
        session=session or {"id": session_id},
    )


@router.get("/failed/checkout/session")
async def checkout_failed(session_id: str | None = Query(None, max_length=255)):
    logger.info("Checkout cancelled or failed (session=%s)", session_id)
    return {
        "success": False,
        "session_id": session_id,
        "error": "Payment failed or was cancelled.",
    }
