from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser, get_current_user
from agentmart.database import get_db
from agentmart.schemas.agent import (
    CATEGORY_PATTERN,
    AgentCreateRequest,
    AgentListResponse,
    AgentRatingSummary,
    AgentResponse,
    AgentUpdateRequest,
)
from agentmart.schemas.common import page_count
from agentmart.services import agent_service, review_service

router = APIRouter(prefix="/agents", tags=["agents"])


@router.post("", response_model=AgentResponse, status_code=201)
async def create_agent(
    req: AgentCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    agent = await agent_service.create_agent(db, current_user.id, req)
    return _agent_to_response(agent)


@router.get("", response_model=AgentListResponse)
async def list_agents(
    category: str | None = Query(None, pattern=CATEGORY_PATTERN),
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    q: str | None = Query(None, max_length=200),
    created_by: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    agents, total = await agent_service.list_agents(
        db,
        page,
        limit,
        category=category,
        min_price=min_price,
        max_price=max_price,
        query=q,
        created_by=created_by,
    )
    return AgentListResponse(
        items=[_agent_to_response(a) for a in agents],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, db: AsyncSession = Depends(get_db)):
    agent = await agent_service.get_agent(db, agent_id)
    return _agent_to_response(agent)


@router.get("/{agent_id}/reviews/summary", response_model=AgentRatingSummary)
async def get_rating_summary(agent_id: str, db: AsyncSession = Depends(get_db)):
    summary = await review_service.get_agent_rating_summary(db, agent_id)
    return AgentRatingSummary(**summary)


@router.patch("/{agent_id}", response_model=AgentResponse)
async def update_agent(
    agent_id: str,
    req: AgentUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    agent = await agent_service.update_agent(db, agent_id, current_user.id, req)
    return _agent_to_response(agent)


@router.delete("/{agent_id}")
async def delete_agent(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await agent_service.delete_agent(db, agent_id, current_user)
    return {"status": "deleted"}


def _agent_to_response(agent) -> AgentResponse:
    return AgentResponse(
        id=agent.id,
        name=agent.name,
        description=agent.description or "",
        category=agent.category,
        price=float(agent.price),
        subscription_price=float(agent.subscription_price) if agent.subscription_price is not None else None,
        created_by=agent.created_by,
        created_at=agent.created_at,
        updated_at=agent.updated_at,
    )
