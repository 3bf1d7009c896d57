from datetime import datetime

from pydantic import BaseModel, Field

from agentmart.models.token_transaction import TOKEN_TRANSACTION_TYPES
from agentmart.schemas.common import PaginatedResponse, choice_pattern

TOKEN_TYPE_PATTERN = choice_pattern(TOKEN_TRANSACTION_TYPES)


class TokenPurchaseRequest(BaseModel):
    user_id: str
    tokens: int = Field(..., gt=0)
    price: float = Field(..., ge=0)
    transaction_id: str = Field(..., min_length=1, max_length=255)


class TokenBalanceResponse(BaseModel):
    user_id: str
    token_balance: int


class TokenTransactionResponse(BaseModel):
    id: str
    user_id: str
    transaction_type: str
    amount: int
    agent_id: str | None = None
    order_id: str | None = None
    transaction_id: str
    created_at: datetime


class TokenPurchaseResponse(BaseModel):
    transaction: TokenTransactionResponse
    token_balance: int


class TokenTransactionListResponse(PaginatedResponse):
    items: list[TokenTransactionResponse]
