import logging
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser
from agentmart.core.exceptions import AgentNotFoundError, ForbiddenError, ValidationError
from agentmart.models.agent import Agent
from agentmart.models.user import User
from agentmart.schemas.agent import AgentCreateRequest, AgentUpdateRequest

logger = logging.getLogger(__name__)


def _to_decimal(value: float | None) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


async def create_agent(db: AsyncSession, creator_id: str, req: AgentCreateRequest) -> Agent:
    """Create a catalog agent owned by ``creator_id``. The creator must exist."""
    creator = await db.get(User, creator_id)
    if creator is None:
        raise ValidationError("User not found")

    agent = Agent(
        name=req.name,
        description=req.description,
        category=req.category,
        price=Decimal(str(req.price)),
        subscription_price=_to_decimal(req.subscription_price),
        created_by=creator.id,
    )
    db.add(agent)
    await db.commit()
    await db.refresh(agent)
    logger.info("Agent created: %s (%s) by %s", agent.name, agent.id, creator.id)
    return agent


async def get_agent(db: AsyncSession, agent_id: str) -> Agent:
    """Get an agent by ID or raise 404."""
    result = await db.execute(select(Agent).where(Agent.id == agent_id))
    agent = result.scalar_one_or_none()
    if not agent:
        raise AgentNotFoundError(agent_id)
    return agent


async def get_agents_by_ids(db: AsyncSession, agent_ids: list[str]) -> list[Agent]:
    """Fetch the agents that exist among ``agent_ids``; unknown ids are ignored."""
    if not agent_ids:
        return []
    result = await db.execute(select(Agent).where(Agent.id.in_(agent_ids)))
    return list(result.scalars().all())


async def quote_agents(db: AsyncSession, agent_ids: list[str]) -> Decimal:
    """Total catalog price of ``agent_ids``. Every id must exist; duplicates count once."""
    unique_ids = list(dict.fromkeys(agent_ids))
    agents = await get_agents_by_ids(db, unique_ids)
    missing = set(unique_ids) - {agent.id for agent in agents}
    if missing:
        raise ValidationError(f"Unknown agent IDs: {', '.join(sorted(missing))}")
    return sum((Decimal(str(agent.price)) for agent in agents), Decimal("0"))


async def list_agents(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    category: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    query: str | None = None,
    created_by: str | None = None,
) -> tuple[list[Agent], int]:
    """List agents with optional filters, newest first."""
    conditions = []
    if category:
        conditions.append(Agent.category == category)
    if min_price is not None:
        conditions.append(Agent.price >= min_price)
    if max_price is not None:
        conditions.append(Agent.price <= max_price)
    if query:
        pattern = f"%{query}%"
        conditions.append(or_(Agent.name.ilike(pattern), Agent.description.ilike(pattern)))
    if created_by:
        conditions.append(Agent.created_by == created_by)

    count_query = select(func.count(Agent.id)).where(*conditions)
    total = (await db.execute(count_query)).scalar() or 0

    stmt = (
        select(Agent)
        .where(*conditions)
        .order_by(Agent.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def update_agent(
    db: AsyncSession, agent_id: str, actor_id: str, req: AgentUpdateRequest
) -> Agent:
    """Update agent fields. Only the agent's creator may do this."""
    agent = await get_agent(db, agent_id)
    if agent.created_by != actor_id:
        raise ForbiddenError("You do not have permission to update this agent")

    for field, value in req.model_dump(exclude_unset=True).items():
        if value is None and field != "subscription_price":
            continue
        if field in ("price", "subscription_price"):
            value = _to_decimal(value)
        setattr(agent, field, value)

    await db.commit()
    await db.refresh(agent)
    return agent


async def delete_agent(db: AsyncSession, agent_id: str, actor: CurrentUser) -> None:
    """Delete an agent. Allowed for its creator or an admin."""
    agent = await get_agent(db, agent_id)
    if agent.created_by != actor.id and not actor.is_admin:
        raise ForbiddenError("You do not have permission to delete this agent")

    await db.delete(agent)
    await db.commit()
    logger.info("Agent deleted: %s by %s", agent_id, actor.id)
