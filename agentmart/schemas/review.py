from datetime import datetime

from pydantic import BaseModel, Field

from agentmart.schemas.common import PaginatedResponse


class ReviewCreateRequest(BaseModel):
    agent_id: str
    rating: float = Field(..., ge=1, le=5)
    comment: str = Field(default="", max_length=5000)


class ReviewUpdateRequest(BaseModel):
    rating: float | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=5000)


class ReviewResponse(BaseModel):
    id: str
    agent_id: str
    user_id: str
    rating: float
    comment: str
    created_at: datetime
    updated_at: datetime


class ReviewListResponse(PaginatedResponse):
    items: list[ReviewResponse]
