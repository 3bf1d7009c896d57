"""Token ledger: purchases credit a user's balance, spends debit it.

Every balance change writes a ``TokenTransaction`` in the same commit, so the
balance always equals purchases minus spends for users whose balance is only
moved through this module.
"""
import logging
import uuid
from decimal import ROUND_CEILING, Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.exceptions import (
    ConflictError,
    InsufficientTokensError,
    TokenTransactionNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from agentmart.models.order import ORDER_COMPLETED, ORDER_TOKEN_PURCHASE, Order
from agentmart.models.token_transaction import TOKEN_PURCHASE, TOKEN_SPENT, TokenTransaction
from agentmart.models.user import User
from agentmart.schemas.token import TokenPurchaseRequest

logger = logging.getLogger(__name__)


def tokens_for_price(price) -> int:
    """Token cost of a catalog price: one token per currency unit, rounded up."""
    return int(Decimal(str(price)).to_integral_value(rounding=ROUND_CEILING))


async def _transaction_id_taken(db: AsyncSession, transaction_id: str) -> bool:
    token_tx = await db.execute(
        select(TokenTransaction.id).where(TokenTransaction.transaction_id == transaction_id)
    )
    if token_tx.first() is not None:
        return True
    order = await db.execute(select(Order.id).where(Order.transaction_id == transaction_id))
    return order.first() is not None


async def get_balance(db: AsyncSession, user_id: str) -> int:
    balance = (await db.execute(select(User.token_balance).where(User.id == user_id))).scalar_one_or_none()
    if balance is None:
        raise UserNotFoundError(user_id)
    return balance


async def purchase_tokens(db: AsyncSession, req: TokenPurchaseRequest) -> tuple[TokenTransaction, int]:
    """Credit ``req.tokens`` to a user.

    Writes a completed TOKEN_PURCHASE order, the PURCHASE ledger entry and the
    new balance in one commit. Returns the ledger entry and the new balance.
    """
    user = await db.get(User, req.user_id)
    if user is None:
        raise ValidationError("User not found")
    if await _transaction_id_taken(db, req.transaction_id):
        raise ConflictError(f"Transaction ID {req.transaction_id} already exists")

    order = Order(
        user_id=user.id,
        payment_status=ORDER_COMPLETED,
        order_type=ORDER_TOKEN_PURCHASE,
        price=Decimal(str(req.price)),
        transaction_id=req.transaction_id,
    )
    try:
        db.add(order)
        await db.flush()

        entry = TokenTransaction(
            user_id=user.id,
            transaction_type=TOKEN_PURCHASE,
            amount=req.tokens,
            order_id=order.id,
            transaction_id=req.transaction_id,
        )
        db.add(entry)
        await db.execute(
            update(User).where(User.id == user.id).values(token_balance=User.token_balance + req.tokens)
        )
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f"Transaction ID {req.transaction_id} already exists") from exc

    await db.refresh(entry)
    balance = await get_balance(db, entry.user_id)
    logger.info("User %s bought %d tokens (balance %d)", entry.user_id, req.tokens, balance)
    return entry, balance


async def debit_tokens(
    db: AsyncSession,
    user_id: str,
    amount: int,
    *,
    agent_id: str | None = None,
    order_id: str | None = None,
) -> TokenTransaction:
    """Debit the balance and stage a SPENT entry. The caller commits.

    The debit is a conditional UPDATE, so two concurrent spends cannot take
    the balance below zero.
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.token_balance >= amount)
        .values(token_balance=User.token_balance - amount)
    )
    if result.rowcount == 0:
        raise InsufficientTokensError(await get_balance(db, user_id), amount)

    entry = TokenTransaction(
        user_id=user_id,
        transaction_type=TOKEN_SPENT,
        amount=amount,
        agent_id=agent_id,
        order_id=order_id,
        transaction_id=f"tok_{uuid.uuid4().hex}",
    )
    db.add(entry)
    return entry


async def get_token_transaction(db: AsyncSession, transaction_id: str) -> TokenTransaction:
    result = await db.execute(select(TokenTransaction).where(TokenTransaction.id == transaction_id))
    entry = result.scalar_one_or_none()
    if not entry:
        raise TokenTransactionNotFoundError(transaction_id)
    return entry


async def list_token_transactions(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    user_id: str | None = None,
    transaction_type: str | None = None,
) -> tuple[list[TokenTransaction], int]:
    conditions = []
    if user_id:
        conditions.append(TokenTransaction.user_id == user_id)
    if transaction_type:
        conditions.append(TokenTransaction.transaction_type == transaction_type)

    total = (await db.execute(select(func.count(TokenTransaction.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(TokenTransaction)
        .where(*conditions)
        .order_by(TokenTransaction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total
