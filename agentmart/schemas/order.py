from datetime import datetime

from pydantic import BaseModel, Field

from agentmart.models.order import ORDER_PENDING, ORDER_STATUSES, ORDER_TYPES
from agentmart.schemas.common import PaginatedResponse, choice_pattern

ORDER_STATUS_PATTERN = choice_pattern(ORDER_STATUSES)
ORDER_TYPE_PATTERN = choice_pattern(ORDER_TYPES)


class OrderCreateRequest(BaseModel):
    user_id: str
    agent_id: str | None = None
    payment_status: str = Field(default=ORDER_PENDING, pattern=ORDER_STATUS_PATTERN)
    order_type: str = Field(..., pattern=ORDER_TYPE_PATTERN)
    price: float = Field(..., ge=0)
    transaction_id: str = Field(..., min_length=1, max_length=255)


class OrderUpdateRequest(BaseModel):
    payment_status: str | None = Field(default=None, pattern=ORDER_STATUS_PATTERN)
    order_type: str | None = Field(default=None, pattern=ORDER_TYPE_PATTERN)
    price: float | None = Field(default=None, ge=0)
    transaction_id: str | None = Field(default=None, min_length=1, max_length=255)


class OrderResponse(BaseModel):
    id: str
    user_id: str
    agent_id: str | None = None
    payment_status: str
    order_type: str
    price: float
    transaction_id: str
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(PaginatedResponse):
    items: list[OrderResponse]
