from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser
from agentmart.core.exceptions import (
    AgentNotFoundError,
    ForbiddenError,
    ReviewNotFoundError,
    UserNotFoundError,
)
from agentmart.models.agent import Agent
from agentmart.models.review import Review
from agentmart.models.user import User
from agentmart.schemas.review import ReviewCreateRequest, ReviewUpdateRequest


async def create_review(db: AsyncSession, author_id: str, req: ReviewCreateRequest) -> Review:
    """Create a review of an agent. Several reviews by the same author are allowed."""
    if await db.get(Agent, req.agent_id) is None:
        raise AgentNotFoundError(req.agent_id)
    if await db.get(User, author_id) is None:
        raise UserNotFoundError(author_id)

    review = Review(
        agent_id=req.agent_id,
        user_id=author_id,
        rating=req.rating,
        comment=req.comment,
    )
    db.add(review)
    await db.commit()
    await db.refresh(review)
    return review


async def get_review(db: AsyncSession, review_id: str) -> Review:
    result = await db.execute(select(Review).where(Review.id == review_id))
    review = result.scalar_one_or_none()
    if not review:
        raise ReviewNotFoundError(review_id)
    return review


async def list_reviews(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    agent_id: str | None = None,
    user_id: str | None = None,
) -> tuple[list[Review], int]:
    conditions = []
    if agent_id:
        conditions.append(Review.agent_id == agent_id)
    if user_id:
        conditions.append(Review.user_id == user_id)

    total = (await db.execute(select(func.count(Review.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(Review)
        .where(*conditions)
        .order_by(Review.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def update_review(
    db: AsyncSession, review_id: str, actor_id: str, req: ReviewUpdateRequest
) -> Review:
    review = await get_review(db, review_id)
    if review.user_id != actor_id:
        raise ForbiddenError("You can only edit your own reviews")

    if req.rating is not None:
        review.rating = req.rating
    if req.comment is not None:
        review.comment = req.comment

    await db.commit()
    await db.refresh(review)
    return review


async def delete_review(db: AsyncSession, review_id: str, actor: CurrentUser) -> None:
    review = await get_review(db, review_id)
    if review.user_id != actor.id and not actor.is_admin:
        raise ForbiddenError("You can only delete your own reviews")

    await db.delete(review)
    await db.commit()


async def get_agent_rating_summary(db: AsyncSession, agent_id: str) -> dict:
    """Average rating and review count for one agent."""
    if await db.get(Agent, agent_id) is None:
        raise AgentNotFoundError(agent_id)

    row = (
        await db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.agent_id == agent_id)
        )
    ).one()
    count, average = row
    return {
        "agent_id": agent_id,
        "review_count": int(count or 0),
        "average_rating": round(float(average), 2) if average is not None else None,
    }
