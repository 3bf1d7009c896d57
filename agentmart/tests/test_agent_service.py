"""Service-layer tests for the agent catalog."""

from decimal import Decimal

import pytest

from agentmart.core.auth import CurrentUser
from agentmart.core.exceptions import AgentNotFoundError, ForbiddenError, ValidationError
from agentmart.models.user import ROLE_ADMIN, ROLE_USER
from agentmart.schemas.agent import AgentCreateRequest, AgentUpdateRequest
from agentmart.services import agent_service


def _principal(user, role: str = ROLE_USER) -> CurrentUser:
    return CurrentUser(id=user.id, email=user.email, role=role)


async def test_create_agent(db, make_user):
    creator, _ = await make_user()
    req = AgentCreateRequest(name="Summarizer", description="Summaries", category="NLP", price=19.99)

    agent = await agent_service.create_agent(db, creator.id, req)

    assert agent.id
    assert agent.created_by == creator.id
    assert float(agent.price) == 19.99
    assert agent.subscription_price is None


async def test_create_agent_unknown_creator(db):
    req = AgentCreateRequest(name="Orphan", category="BOTS", price=1)
    with pytest.raises(ValidationError):
        await agent_service.create_agent(db, "missing-user", req)


async def test_get_agent_not_found(db):
    with pytest.raises(AgentNotFoundError) as exc_info:
        await agent_service.get_agent(db, "nope")
    assert exc_info.value.detail == "Agent with ID nope not found"


async def test_get_agents_by_ids_ignores_unknown(db, make_user, make_agent):
    creator, _ = await make_user()
    a1 = await make_agent(creator.id)
    found = await agent_service.get_agents_by_ids(db, [a1.id, "ghost"])
    assert [a.id for a in found] == [a1.id]
    assert await agent_service.get_agents_by_ids(db, []) == []


async def test_quote_agents(db, make_user, make_agent):
    creator, _ = await make_user()
    a1 = await make_agent(creator.id, price=19.99)
    a2 = await make_agent(creator.id, price=5)

    assert await agent_service.quote_agents(db, [a1.id, a2.id, a1.id]) == Decimal("24.99")
    with pytest.raises(ValidationError, match="ghost"):
        await agent_service.quote_agents(db, [a1.id, "ghost"])


async def test_list_agents_filters(db, make_user, make_agent):
    creator, _ = await make_user()
    other, _ = await make_user()
    await make_agent(creator.id, name="Invoice Vision", category="COMPUTER_VISION", price=50)
    await make_agent(creator.id, name="Chat helper", category="BOTS", price=5, description="talks")
    await make_agent(other.id, name="Forecast", category="ANALYTICS", price=120)

    agents, total = await agent_service.list_agents(db, category="BOTS")
    assert total == 1 and agents[0].name == "Chat helper"

    agents, total = await agent_service.list_agents(db, min_price=10, max_price=100)
    assert total == 1 and agents[0].name == "Invoice Vision"

    agents, total = await agent_service.list_agents(db, query="TALK")
    assert total == 1 and agents[0].name == "Chat helper"

    _, total = await agent_service.list_agents(db, created_by=other.id)
    assert total == 1


async def test_list_agents_pagination(db, make_user, make_agent):
    creator, _ = await make_user()
    for i in range(7):
        await make_agent(creator.id, name=f"agent-{i}")

    page1, total = await agent_service.list_agents(db, page=1, limit=3)
    page3, _ = await agent_service.list_agents(db, page=3, limit=3)

    assert total == 7
    assert len(page1) == 3
    assert len(page3) == 1


async def test_update_agent_by_creator(db, make_user, make_agent):
    creator, _ = await make_user()
    agent = await make_agent(creator.id, price=10)

    updated = await agent_service.update_agent(
        db, agent.id, creator.id, AgentUpdateRequest(price=12.5, name="Renamed")
    )

    assert updated.name == "Renamed"
    assert float(updated.price) == 12.5


@pytest.mark.parametrize("role", [ROLE_USER, ROLE_ADMIN])
async def test_update_agent_rejects_non_creator(db, make_user, make_agent, role):
    creator, _ = await make_user()
    stranger, _ = await make_user(role=role)
    agent = await make_agent(creator.id)

    with pytest.raises(ForbiddenError):
        await agent_service.update_agent(db, agent.id, stranger.id, AgentUpdateRequest(name="Hijack"))


async def test_delete_agent_permissions(db, make_user, make_agent):
    creator, _ = await make_user()
    stranger, _ = await make_user()
    admin, _ = await make_user(role=ROLE_ADMIN)
    a1 = await make_agent(creator.id)
    a2 = await make_agent(creator.id)

    with pytest.raises(ForbiddenError):
        await agent_service.delete_agent(db, a1.id, _principal(stranger))

    await agent_service.delete_agent(db, a1.id, _principal(creator))
    await agent_service.delete_agent(db, a2.id, _principal(admin, ROLE_ADMIN))

    _, total = await agent_service.list_agents(db)
    assert total == 0
