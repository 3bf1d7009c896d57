from datetime import datetime

from pydantic import BaseModel, Field

from agentmart.models.subscription import SUBSCRIPTION_STATUSES
from agentmart.schemas.common import PaginatedResponse, choice_pattern

SUBSCRIPTION_STATUS_PATTERN = choice_pattern(SUBSCRIPTION_STATUSES)


class SubscriptionCreateRequest(BaseModel):
    agent_id: str
    pay_with_tokens: bool = False


class SubscriptionUpdateRequest(BaseModel):
    status: str | None = Field(default=None, pattern=SUBSCRIPTION_STATUS_PATTERN)
    end_date: datetime | None = None
    renewal_date: datetime | None = None


class SubscriptionResponse(BaseModel):
    id: str
    user_id: str
    agent_id: str
    status: str
    start_date: datetime
    end_date: datetime | None = None
    renewal_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class SubscriptionListResponse(PaginatedResponse):
    items: list[SubscriptionResponse]
