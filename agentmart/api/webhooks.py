"""Stripe webhook receiver.

``checkout.session.completed`` events are reconciled the same way as the
success redirect, so whichever arrives first does the work and the other
finds the session already fulfilled.
"""

import logging

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.database import get_db
from agentmart.services.fulfillment_service import reconcile_checkout_session
from agentmart.services.stripe_service import StripeCheckoutService, get_checkout_service

router = APIRouter(tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    checkout: StripeCheckoutService = Depends(get_checkout_service),
):
    """Handle Stripe webhook events."""
    if not stripe_signature:
        logger.warning("Stripe webhook rejected: missing Stripe-Signature header")
        return JSONResponse(
            status_code=401,
            content={"error": "Missing Stripe-Signature header"},
        )

    payload = await request.body()
    event = checkout.construct_webhook_event(payload, stripe_signature)
    if event is None:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid webhook signature"},
        )

    event_type = event.get("type", "")
    logger.info("Stripe webhook received: %s (%s)", event_type, event.get("id"))

    if event_type == "checkout.session.completed":
        session_id = (event.get("data") or {}).get("id")
        if not session_id:
            logger.warning("checkout.session.completed event %s has no session id", event.get("id"))
            return {"status": "ignored"}
        result, _ = await reconcile_checkout_session(db, checkout, session_id)
        return {"status": "ok", "fulfillment": result.status}

    logger.debug("Unhandled Stripe event type: %s", event_type)
    return {"status": "ok"}
