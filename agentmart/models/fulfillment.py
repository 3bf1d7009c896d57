"""Idempotency ledger for completed checkout sessions."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from agentmart.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class FulfillmentRecord(Base):
    """One row per reconciled checkout session. The unique session id is the idempotency key."""
    __tablename__ = "checkout_fulfillments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(255), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    payment_intent_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False)  # fulfilled | partial
    granted_agent_ids = Column(Text, nullable=False, default="[]")  # JSON array
    skipped_agent_ids = Column(Text, nullable=False, default="[]")  # JSON array
    order_ids = Column(Text, nullable=False, default="[]")  # JSON array
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
