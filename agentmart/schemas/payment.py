from datetime import datetime

from pydantic import BaseModel, Field

from agentmart.models.payment import PAYMENT_GATEWAYS, PAYMENT_PENDING, PAYMENT_STATUSES
from agentmart.schemas.common import PaginatedResponse, choice_pattern

PAYMENT_STATUS_PATTERN = choice_pattern(PAYMENT_STATUSES)
GATEWAY_PATTERN = choice_pattern(PAYMENT_GATEWAYS)


class PaymentCreateRequest(BaseModel):
    order_id: str
    user_id: str
    payment_gateway: str = Field(..., pattern=GATEWAY_PATTERN)
    payment_status: str = Field(default=PAYMENT_PENDING, pattern=PAYMENT_STATUS_PATTERN)
    amount: float = Field(..., ge=0)
    transaction_id: str = Field(..., min_length=1, max_length=255)


class PaymentStatusUpdateRequest(BaseModel):
    payment_status: str = Field(..., pattern=PAYMENT_STATUS_PATTERN)


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    user_id: str
    payment_gateway: str
    payment_status: str
    amount: float
    transaction_id: str
    created_at: datetime


class PaymentListResponse(PaginatedResponse):
    items: list[PaymentResponse]
