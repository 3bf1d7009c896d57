from datetime import datetime

from pydantic import BaseModel, Field

from agentmart.models.user import USER_ROLES
from agentmart.schemas.agent import AgentResponse
from agentmart.schemas.common import PaginatedResponse, choice_pattern

ROLE_PATTERN = choice_pattern(USER_ROLES)


class UserRegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=5, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)


class UserLoginRequest(BaseModel):
    email: str
    password: str


class UserUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = Field(default=None, min_length=5, max_length=255)
    password: str | None = Field(default=None, min_length=8, max_length=128)
    role: str | None = Field(default=None, pattern=ROLE_PATTERN)
    token_balance: int | None = Field(default=None, ge=0)


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role: str
    token_balance: int
    owned_agents: list[AgentResponse] = []
    created_at: datetime
    updated_at: datetime


class UserAuthResponse(BaseModel):
    user: UserResponse
    token: str


class UserListResponse(PaginatedResponse):
    items: list[UserResponse]
