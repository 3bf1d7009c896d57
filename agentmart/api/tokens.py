"""Token balance and ledger endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser, get_current_user, require_admin
from agentmart.core.exceptions import TokenTransactionNotFoundError
from agentmart.database import get_db
from agentmart.schemas.common import page_count
from agentmart.schemas.token import (
    TOKEN_TYPE_PATTERN,
    TokenBalanceResponse,
    TokenPurchaseRequest,
    TokenPurchaseResponse,
    TokenTransactionListResponse,
    TokenTransactionResponse,
)
from agentmart.services import token_service

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.get("/balance", response_model=TokenBalanceResponse)
async def get_balance(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    balance = await token_service.get_balance(db, current_user.id)
    return TokenBalanceResponse(user_id=current_user.id, token_balance=balance)


@router.post("/purchase", response_model=TokenPurchaseResponse, status_code=201)
async def purchase_tokens(
    req: TokenPurchaseRequest,
    db: AsyncSession = Depends(get_db),
    _admin: CurrentUser = Depends(require_admin),
):
    entry, balance = await token_service.purchase_tokens(db, req)
    return TokenPurchaseResponse(transaction=_entry_to_response(entry), token_balance=balance)


@router.get("/transactions", response_model=TokenTransactionListResponse)
async def list_transactions(
    user_id: str | None = Query(None),
    transaction_type: str | None = Query(None, pattern=TOKEN_TYPE_PATTERN),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    if not current_user.is_admin:
        user_id = current_user.id
    entries, total = await token_service.list_token_transactions(
        db, page, limit, user_id=user_id, transaction_type=transaction_type
    )
    return TokenTransactionListResponse(
        items=[_entry_to_response(e) for e in entries],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/transactions/{transaction_id}", response_model=TokenTransactionResponse)
async def get_transaction(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    entry = await token_service.get_token_transaction(db, transaction_id)
    if not current_user.is_admin and entry.user_id != current_user.id:
        raise TokenTransactionNotFoundError(transaction_id)
    return _entry_to_response(entry)


def _entry_to_response(entry) -> TokenTransactionResponse:
    return TokenTransactionResponse(
        id=entry.id,
        user_id=entry.user_id,
        transaction_type=entry.transaction_type,
        amount=entry.amount,
        agent_id=entry.agent_id,
        order_id=entry.order_id,
        transaction_id=entry.transaction_id,
        created_at=entry.created_at,
    )
