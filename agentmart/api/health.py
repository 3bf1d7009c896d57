import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart import __version__
from agentmart.database import get_db
from agentmart.models.agent import Agent
from agentmart.models.order import Order
from agentmart.models.user import User
from agentmart.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    users = (await db.execute(select(func.count(User.id)))).scalar() or 0
    agents = (await db.execute(select(func.count(Agent.id)))).scalar() or 0
    orders = (await db.execute(select(func.count(Order.id)))).scalar() or 0

    return HealthResponse(
        status="healthy",
        version=__version__,
        users_count=users,
        agents_count=agents,
        orders_count=orders,
    )


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness check: verifies DB connectivity."""
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ready", "database": "connected"}
    except Exception:
        logger.exception("Readiness check failed: database unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "database": "unavailable"},
        )
