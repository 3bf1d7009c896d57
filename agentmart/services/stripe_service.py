"""Stripe hosted-checkout integration.

Creates Checkout Sessions carrying the buyer id and the purchased agent ids
as session metadata, reads sessions back after payment, and verifies webhook
signatures. Stripe treats the metadata as opaque; ``decode_session_metadata``
is the only place that interprets it.

Requires: STRIPE_SECRET_KEY, FRONTEND_URL and BACKEND_URL env vars
(STRIPE_WEBHOOK_SECRET for the webhook endpoint).
"""

import asyncio
import json
import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from agentmart.config import settings
from agentmart.core.exceptions import CheckoutSessionError

logger = logging.getLogger(__name__)

# Stripe caps each metadata value at 500 characters.
_METADATA_VALUE_LIMIT = 500

SUCCESS_PATH = "/api/v1/pay/success/checkout/session"


def _to_plain(obj) -> dict:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def session_to_dict(session) -> dict:
    """Project a Stripe Checkout Session onto the fields this service uses."""
    customer = getattr(session, "customer_details", None)
    return {
        "id": session.id,
        "url": getattr(session, "url", None),
        "status": getattr(session, "status", None),
        "payment_status": getattr(session, "payment_status", None),
        "payment_intent": getattr(session, "payment_intent", None),
        "amount_total": getattr(session, "amount_total", None),
        "currency": getattr(session, "currency", None),
        "metadata": _to_plain(getattr(session, "metadata", None)),
        "customer_details": {
            "name": getattr(customer, "name", None),
            "email": getattr(customer, "email", None),
        } if customer else None,
    }


def decode_session_metadata(session: dict) -> tuple[str | None, list[str]]:
    """Return (user_id, agent_ids) embedded in a session's metadata.

    Malformed agent-id payloads decode to an empty list.
    """
    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id") or None
    try:
        agent_ids = json.loads(metadata.get("agent_ids") or "[]")
    except (json.JSONDecodeError, TypeError):
        logger.warning("Checkout session %s has malformed agent_ids metadata", session.get("id"))
        return user_id, []
    if not isinstance(agent_ids, list):
        return user_id, []
    # Preserve order, drop duplicates and non-strings.
    seen: dict[str, None] = {}
    for agent_id in agent_ids:
        if isinstance(agent_id, str) and agent_id:
            seen.setdefault(agent_id, None)
    return user_id, list(seen)


class StripeCheckoutService:
    """Stripe Checkout Session operations."""

    def __init__(
        self,
        secret_key: str,
        frontend_url: str,
        backend_url: str,
        webhook_secret: str = "",
        currency: str = "usd",
    ):
        if not secret_key:
            raise RuntimeError("Stripe secret key is not defined in environment variables")
        if not frontend_url or not backend_url:
            raise RuntimeError("FRONTEND_URL or BACKEND_URL not defined in environment variables")

        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.frontend_url = frontend_url.rstrip("/")
        self.backend_url = backend_url.rstrip("/")
        self.currency = currency
        logger.info(
            "Stripe checkout initialized (mode=%s)",
            "test" if secret_key.startswith("sk_test_") else "live",
        )

    @property
    def success_url(self) -> str:
        return f"{self.backend_url}{SUCCESS_PATH}?session_id={{CHECKOUT_SESSION_ID}}"

    @property
    def cancel_url(self) -> str:
        return f"{self.frontend_url}/payment-failed"

    async def create_checkout_session(
        self,
        amount: float | Decimal,
        agent_ids: list[str],
        user_id: str,
    ) -> dict:
        """Create a hosted payment session for ``agent_ids`` bought by ``user_id``."""
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError("Amount must be a positive number")

        encoded_ids = json.dumps(list(agent_ids), separators=(",", ":"))
        if len(encoded_ids) > _METADATA_VALUE_LIMIT:
            raise ValueError("Too many agents for a single checkout session")

        unit_amount = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.secret_key,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {"name": f"AgentMart purchase ({len(agent_ids)} agent(s))"},
                            "unit_amount": unit_amount,
                        },
                        "quantity": 1,
                    }
                ],
                mode="payment",
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                client_reference_id=user_id,
                metadata={"user_id": user_id, "agent_ids": encoded_ids},
            )
        except stripe.StripeError as exc:
            logger.exception("Error creating checkout session for user %s", user_id)
            raise CheckoutSessionError("Could not create checkout session") from exc

        logger.info("Checkout session %s created for user %s (%d agents)", session.id, user_id, len(agent_ids))
        return session_to_dict(session)

    async def retrieve_session(self, session_id: str) -> dict:
        """Fetch the authoritative session record from Stripe."""
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.retrieve, session_id, api_key=self.secret_key
            )
        except stripe.StripeError as exc:
            logger.exception("Error retrieving checkout session %s", session_id)
            raise CheckoutSessionError("Could not retrieve checkout session") from exc
        return session_to_dict(session)

    def construct_webhook_event(self, payload: bytes, sig_header: str) -> dict | None:
        """Verify a Stripe webhook signature and return the event, or None if invalid."""
        if not self.webhook_secret:
            logger.warning("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not configured")
            return None
        try:
            event = stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except ValueError:
            logger.warning("Invalid Stripe webhook payload")
            return None
        except stripe.SignatureVerificationError:
            logger.warning("Invalid Stripe webhook signature")
            return None

        data_object = event.data.object if event.data else None
        return {
            "id": event.id,
            "type": event.type,
            "data": session_to_dict(data_object) if data_object is not None else {},
        }


def get_checkout_service() -> StripeCheckoutService:
    """FastAPI dependency building the checkout service from settings."""
    return StripeCheckoutService(
        secret_key=settings.stripe_secret_key,
        frontend_url=settings.frontend_url,
        backend_url=settings.backend_url,
        webhook_secret=settings.stripe_webhook_secret,
        currency=settings.stripe_currency,
    )
