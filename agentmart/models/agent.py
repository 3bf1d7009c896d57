import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, Text

from agentmart.database import Base

AGENT_CATEGORIES = ("NLP", "COMPUTER_VISION", "ANALYTICS", "BOTS", "WORKFLOW_HELPERS")


def utcnow():
    return datetime.now(timezone.utc)


class Agent(Base):
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(30), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    subscription_price = Column(Numeric(10, 2), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_agents_category", "category"),
        Index("idx_agents_created_by", "created_by"),
        Index("idx_agents_price", "price"),
    )
