from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.api.agents import _agent_to_response
from agentmart.core.auth import CurrentUser, create_user_token, get_current_user, require_admin
from agentmart.database import get_db
from agentmart.schemas.agent import AgentResponse
from agentmart.schemas.common import page_count
from agentmart.schemas.user import (
    ROLE_PATTERN,
    UserAuthResponse,
    UserListResponse,
    UserLoginRequest,
    UserRegisterRequest,
    UserResponse,
    UserUpdateRequest,
)
from agentmart.services import user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserAuthResponse, status_code=201)
async def register(req: UserRegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.register_user(db, req)
    token = create_user_token(user.id, user.email, user.role)
    return UserAuthResponse(user=_user_to_response(user), token=token)


@router.post("/login", response_model=UserAuthResponse)
async def login(req: UserLoginRequest, db: AsyncSession = Depends(get_db)):
    user, token = await user_service.login_user(db, req)
    return UserAuthResponse(user=_user_to_response(user), token=token)


@router.get("", response_model=UserListResponse)
async def list_users(
    role: str | None = Query(None, pattern=ROLE_PATTERN),
    q: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    users, total = await user_service.list_users(db, page, limit, role=role, query=q)
    return UserListResponse(
        items=[_user_to_response(u) for u in users],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    user = await user_service.get_user(db, current_user.id)
    return _user_to_response(user)


@router.get("/profile/agents", response_model=list[AgentResponse])
async def get_my_agents(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    agents = await user_service.get_owned_agents(db, current_user.id)
    return [_agent_to_response(a) for a in agents]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    user = await user_service.get_user(db, user_id)
    return _user_to_response(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    req: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    user = await user_service.update_user(db, user_id, current_user, req)
    return _user_to_response(user)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    await user_service.delete_user(db, user_id)
    return {"status": "deleted"}


def _user_to_response(user) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        token_balance=user.token_balance or 0,
        owned_agents=[_agent_to_response(a) for a in user.owned_agents],
        created_at=user.created_at,
        updated_at=user.updated_at,
    )
