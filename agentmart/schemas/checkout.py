from pydantic import BaseModel, Field


class CheckoutSessionRequest(BaseModel):
    amount: float = Field(..., gt=0)
    agent_ids: list[str] = Field(..., min_length=1, max_length=12)


class CheckoutSessionResponse(BaseModel):
    id: str
    url: str | None = None
    amount_total: int | None = None
    currency: str | None = None


class FulfillmentResponse(BaseModel):
    status: str
    session_id: str
    user_id: str | None = None
    granted_agent_ids: list[str] = []
    skipped_agent_ids: list[str] = []
    order_ids: list[str] = []
    reason: str | None = None


class CheckoutSuccessResponse(BaseModel):
    success: bool
    fulfillment: FulfillmentResponse
    session: dict
