import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from agentmart.database import Base

TOKEN_PURCHASE = "PURCHASE"
TOKEN_SPENT = "SPENT"
TOKEN_TRANSACTION_TYPES = (TOKEN_PURCHASE, TOKEN_SPENT)


def utcnow():
    return datetime.now(timezone.utc)


class TokenTransaction(Base):
    """One movement of a user's token balance. ``amount`` is always positive."""
    __tablename__ = "token_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    transaction_type = Column(String(20), nullable=False)  # PURCHASE | SPENT
    amount = Column(Integer, nullable=False)
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    transaction_id = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_token_tx_user", "user_id"),
        Index("idx_token_tx_type", "transaction_type"),
    )
