from datetime import datetime

from pydantic import BaseModel, Field

from agentmart.models.agent import AGENT_CATEGORIES
from agentmart.schemas.common import PaginatedResponse, choice_pattern

CATEGORY_PATTERN = choice_pattern(AGENT_CATEGORIES)


class AgentCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    category: str = Field(..., pattern=CATEGORY_PATTERN)
    price: float = Field(..., ge=0)
    subscription_price: float | None = Field(default=None, ge=0)


class AgentUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    category: str | None = Field(default=None, pattern=CATEGORY_PATTERN)
    price: float | None = Field(default=None, ge=0)
    subscription_price: float | None = Field(default=None, ge=0)


class AgentResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    price: float
    subscription_price: float | None = None
    created_by: str
    created_at: datetime
    updated_at: datetime


class AgentListResponse(PaginatedResponse):
    items: list[AgentResponse]


class AgentRatingSummary(BaseModel):
    agent_id: str
    review_count: int
    average_rating: float | None = None
