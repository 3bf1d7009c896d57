"""Service-layer tests for orders."""

import pytest

from agentmart.core.exceptions import ConflictError, OrderNotFoundError, ValidationError
from agentmart.schemas.order import OrderCreateRequest, OrderUpdateRequest
from agentmart.services import order_service


def _req(user_id: str, **overrides) -> OrderCreateRequest:
    data = {
        "user_id": user_id,
        "order_type": "ONE_TIME",
        "price": 25.0,
        "transaction_id": "tx-001",
    }
    data.update(overrides)
    return OrderCreateRequest(**data)


async def test_create_order(db, make_user, make_agent):
    buyer, _ = await make_user()
    agent = await make_agent(buyer.id)

    order = await order_service.create_order(db, _req(buyer.id, agent_id=agent.id), created_by=buyer.id)

    assert order.payment_status == "PENDING"
    assert order.agent_id == agent.id
    assert order.created_by == buyer.id
    assert float(order.price) == 25.0


async def test_duplicate_transaction_id_rejected(db, make_user):
    buyer, _ = await make_user()
    await order_service.create_order(db, _req(buyer.id))

    with pytest.raises(ConflictError) as exc_info:
        await order_service.create_order(db, _req(buyer.id, price=99))
    assert exc_info.value.status_code == 409

    _, total = await order_service.list_orders(db)
    assert total == 1


async def test_create_order_unknown_refs(db, make_user):
    buyer, _ = await make_user()
    with pytest.raises(ValidationError, match="User not found"):
        await order_service.create_order(db, _req("ghost"))
    with pytest.raises(ValidationError, match="Agent not found"):
        await order_service.create_order(db, _req(buyer.id, agent_id="ghost"))


async def test_list_orders_filters(db, make_user, make_order):
    alice, _ = await make_user()
    bob, _ = await make_user()
    await make_order(alice.id, price=5, transaction_id="stripe-aaa", payment_status="COMPLETED")
    await make_order(alice.id, price=50, transaction_id="stripe-bbb")
    await make_order(bob.id, price=500, transaction_id="jazz-ccc", order_type="SUBSCRIPTION")

    _, total = await order_service.list_orders(db, user_id=alice.id)
    assert total == 2
    _, total = await order_service.list_orders(db, payment_status="COMPLETED")
    assert total == 1
    _, total = await order_service.list_orders(db, order_type="SUBSCRIPTION")
    assert total == 1
    _, total = await order_service.list_orders(db, min_price=10, max_price=100)
    assert total == 1
    orders, total = await order_service.list_orders(db, query="STRIPE")
    assert total == 2
    orders, total = await order_service.list_orders(db, page=2, limit=2)
    assert total == 3 and len(orders) == 1


async def test_update_order_status_and_tx(db, make_user, make_order):
    buyer, _ = await make_user()
    order = await make_order(buyer.id, transaction_id="tx-a")
    await make_order(buyer.id, transaction_id="tx-b")

    updated = await order_service.update_order(
        db, order.id, OrderUpdateRequest(payment_status="REFUNDED", price=7.5)
    )
    assert updated.payment_status == "REFUNDED"
    assert float(updated.price) == 7.5

    with pytest.raises(ConflictError):
        await order_service.update_order(db, order.id, OrderUpdateRequest(transaction_id="tx-b"))


async def test_update_order_transaction_id_race_conflicts(db, make_user, make_order, monkeypatch):
    buyer, _ = await make_user()
    order = await make_order(buyer.id, transaction_id="tx-a")
    order_id = order.id
    await make_order(buyer.id, transaction_id="tx-b")

    async def _free(db, transaction_id):
        return False

    monkeypatch.setattr(order_service, "_transaction_id_taken", _free)
    with pytest.raises(ConflictError):
        await order_service.update_order(db, order_id, OrderUpdateRequest(transaction_id="tx-b"))

    assert (await order_service.get_order(db, order_id)).transaction_id == "tx-a"


async def test_delete_order(db, make_user, make_order):
    buyer, _ = await make_user()
    order = await make_order(buyer.id)
    await order_service.delete_order(db, order.id)
    with pytest.raises(OrderNotFoundError):
        await order_service.get_order(db, order.id)
