import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String

from agentmart.database import Base

GATEWAY_STRIPE = "STRIPE"
PAYMENT_GATEWAYS = (GATEWAY_STRIPE, "JAZZCASH", "PAYPRO")

PAYMENT_PENDING = "PENDING"
PAYMENT_SUCCESS = "SUCCESS"
PAYMENT_FAILED = "FAILED"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_SUCCESS, PAYMENT_FAILED)


def utcnow():
    return datetime.now(timezone.utc)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    payment_gateway = Column(String(20), nullable=False)
    payment_status = Column(String(20), nullable=False, default=PAYMENT_PENDING)
    amount = Column(Numeric(10, 2), nullable=False)
    transaction_id = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_payments_order", "order_id"),
        Index("idx_payments_user", "user_id"),
        Index("idx_payments_status", "payment_status"),
        Index("idx_payments_created", "created_at"),
    )
