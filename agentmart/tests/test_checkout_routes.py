"""Tests for the checkout endpoints (api/checkout.py) and the Stripe webhook."""

import json

from sqlalchemy import func, select

from agentmart.models.order import Order
from agentmart.tests.conftest import FakeCheckoutService, TestSession

_PAY = "/api/v1/pay"
_WEBHOOK = "/api/v1/webhooks/stripe"


async def _order_count() -> int:
    async with TestSession() as s:
        return (await s.execute(select(func.count(Order.id)))).scalar()


async def test_create_checkout_session(client, checkout, make_user, make_agent, auth_header):
    buyer, token = await make_user()
    agent = await make_agent(buyer.id, price=100)

    resp = await client.post(
        f"{_PAY}/create-checkout-session",
        json={"amount": 100, "agent_ids": [agent.id]},
        headers=auth_header(token),
    )

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["id"].startswith("cs_test_")
    assert body["url"]
    assert body["amount_total"] == 10000
    stored = checkout.sessions[body["id"]]
    assert stored["metadata"]["user_id"] == buyer.id
    assert json.loads(stored["metadata"]["agent_ids"]) == [agent.id]


async def test_create_checkout_session_validation(client, make_user, auth_header):
    _, token = await make_user()

    resp = await client.post(
        f"{_PAY}/create-checkout-session", json={"amount": 0, "agent_ids": ["a"]}, headers=auth_header(token)
    )
    assert resp.status_code == 422

    resp = await client.post(
        f"{_PAY}/create-checkout-session", json={"amount": 5, "agent_ids": []}, headers=auth_header(token)
    )
    assert resp.status_code == 422

    resp = await client.post(f"{_PAY}/create-checkout-session", json={"amount": 5, "agent_ids": ["a"]})
    assert resp.status_code == 401


async def test_create_checkout_session_amount_must_match_prices(
    client, checkout, make_user, make_agent, auth_header
):
    creator, _ = await make_user()
    _, token = await make_user()
    a1 = await make_agent(creator.id, price=40)
    a2 = await make_agent(creator.id, price=60)

    resp = await client.post(
        f"{_PAY}/create-checkout-session",
        json={"amount": 0.5, "agent_ids": [a1.id, a2.id]},
        headers=auth_header(token),
    )
    assert resp.status_code == 400
    assert "does not match" in resp.json()["detail"]
    assert checkout.sessions == {}

    resp = await client.post(
        f"{_PAY}/create-checkout-session",
        json={"amount": 100, "agent_ids": [a1.id, a2.id, a1.id]},
        headers=auth_header(token),
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["amount_total"] == 10000


async def test_create_checkout_session_unknown_agent(client, checkout, make_user, make_agent, auth_header):
    creator, token = await make_user()
    agent = await make_agent(creator.id, price=10)

    resp = await client.post(
        f"{_PAY}/create-checkout-session",
        json={"amount": 10, "agent_ids": [agent.id, "ghost-agent"]},
        headers=auth_header(token),
    )
    assert resp.status_code == 400
    assert "ghost-agent" in resp.json()["detail"]
    assert checkout.sessions == {}


async def test_success_redirect_fulfills_once(client, checkout, make_user, make_agent, auth_header):
    creator, _ = await make_user()
    buyer, buyer_token = await make_user()
    a1 = await make_agent(creator.id, price=40)
    a2 = await make_agent(creator.id, price=60)
    checkout.add_session("sess_1", buyer.id, [a1.id, a2.id], amount_total=10000)

    resp = await client.get(f"{_PAY}/success/checkout/session", params={"session_id": "sess_1"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["fulfillment"]["status"] == "fulfilled"
    assert body["session"]["id"] == "sess_1"
    assert await _order_count() == 2

    resp = await client.get(f"{_PAY}/success/checkout/session", params={"session_id": "sess_1"})
    assert resp.json()["fulfillment"]["status"] == "already_fulfilled"
    assert await _order_count() == 2

    resp = await client.get("/api/v1/users/profile/agents", headers=auth_header(buyer_token))
    assert {a["id"] for a in resp.json()} == {a1.id, a2.id}

    resp = await client.get("/api/v1/orders", headers=auth_header(buyer_token))
    orders = resp.json()["items"]
    assert len(orders) == 2
    assert all(o["payment_status"] == "COMPLETED" for o in orders)


async def test_success_redirect_unpaid_session(client, checkout, make_user, make_agent):
    buyer, _ = await make_user()
    agent = await make_agent(buyer.id)
    checkout.add_session("sess_unpaid", buyer.id, [agent.id], payment_status="unpaid")

    resp = await client.get(f"{_PAY}/success/checkout/session", params={"session_id": "sess_unpaid"})
    assert resp.status_code == 200
    assert resp.json()["success"] is False
    assert resp.json()["fulfillment"]["reason"] == "session_not_paid"


async def test_success_redirect_unknown_session(client):
    resp = await client.get(f"{_PAY}/success/checkout/session", params={"session_id": "nope"})
    assert resp.status_code == 502
    assert resp.json()["detail"] == "Could not retrieve checkout session"


async def test_success_redirect_requires_session_id(client):
    resp = await client.get(f"{_PAY}/success/checkout/session")
    assert resp.status_code == 422


async def test_failed_redirect(client):
    resp = await client.get(f"{_PAY}/failed/checkout/session", params={"session_id": "cs_x"})
    assert resp.status_code == 200
    assert resp.json()["success"] is False
    assert resp.json()["session_id"] == "cs_x"


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


def _event(session_id: str, event_type: str = "checkout.session.completed") -> bytes:
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"id": session_id}}).encode()


async def test_webhook_missing_signature(client):
    resp = await client.post(_WEBHOOK, content=_event("sess_1"))
    assert resp.status_code == 401


async def test_webhook_bad_signature(client):
    resp = await client.post(_WEBHOOK, content=_event("sess_1"), headers={"Stripe-Signature": "t=1,v1=bad"})
    assert resp.status_code == 400


async def test_webhook_completed_session_fulfills(client, checkout, make_user, make_agent):
    buyer, _ = await make_user()
    agent = await make_agent(buyer.id)
    checkout.add_session("sess_wh", buyer.id, [agent.id])
    headers = {"Stripe-Signature": FakeCheckoutService.VALID_SIGNATURE}

    resp = await client.post(_WEBHOOK, content=_event("sess_wh"), headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "fulfillment": "fulfilled"}

    # Redelivery and the browser redirect both find the session already done.
    resp = await client.post(_WEBHOOK, content=_event("sess_wh"), headers=headers)
    assert resp.json()["fulfillment"] == "already_fulfilled"
    resp = await client.get(f"{_PAY}/success/checkout/session", params={"session_id": "sess_wh"})
    assert resp.json()["fulfillment"]["status"] == "already_fulfilled"
    assert await _order_count() == 1


async def test_webhook_ignores_other_events(client):
    headers = {"Stripe-Signature": FakeCheckoutService.VALID_SIGNATURE}
    resp = await client.post(_WEBHOOK, content=_event("sess_x", "charge.refunded"), headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
