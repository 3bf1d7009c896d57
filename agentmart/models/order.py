import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String

from agentmart.database import Base

ORDER_PENDING = "PENDING"
ORDER_COMPLETED = "COMPLETED"
ORDER_FAILED = "FAILED"
ORDER_REFUNDED = "REFUNDED"
ORDER_STATUSES = (ORDER_PENDING, ORDER_COMPLETED, ORDER_FAILED, ORDER_REFUNDED)

ORDER_ONE_TIME = "ONE_TIME"
ORDER_SUBSCRIPTION = "SUBSCRIPTION"
ORDER_TOKEN_PURCHASE = "TOKEN_PURCHASE"
ORDER_TYPES = (ORDER_ONE_TIME, ORDER_SUBSCRIPTION, ORDER_TOKEN_PURCHASE)


def utcnow():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True)
    payment_status = Column(String(20), nullable=False, default=ORDER_PENDING)
    order_type = Column(String(20), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(String(255), unique=True, nullable=False)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_orders_user", "user_id"),
        Index("idx_orders_agent", "agent_id"),
        Index("idx_orders_status", "payment_status"),
    )
