from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.core.auth import CurrentUser, get_current_user
from agentmart.database import get_db
from agentmart.schemas.common import page_count
from agentmart.schemas.review import (
    ReviewCreateRequest,
    ReviewListResponse,
    ReviewResponse,
    ReviewUpdateRequest,
)
from agentmart.services import review_service

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    req: ReviewCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    review = await review_service.create_review(db, current_user.id, req)
    return _review_to_response(review)


@router.get("", response_model=ReviewListResponse)
async def list_reviews(
    agent_id: str | None = Query(None),
    user_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    reviews, total = await review_service.list_reviews(
        db, page, limit, agent_id=agent_id, user_id=user_id
    )
    return ReviewListResponse(
        items=[_review_to_response(r) for r in reviews],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get("/{review_id}", response_model=ReviewResponse)
async def get_review(review_id: str, db: AsyncSession = Depends(get_db)):
    review = await review_service.get_review(db, review_id)
    return _review_to_response(review)


@router.patch("/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: str,
    req: ReviewUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    review = await review_service.update_review(db, review_id, current_user.id, req)
    return _review_to_response(review)


@router.delete("/{review_id}")
async def delete_review(
    review_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    await review_service.delete_review(db, review_id, current_user)
    return {"status": "deleted"}


def _review_to_response(review) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        agent_id=review.agent_id,
        user_id=review.user_id,
        rating=float(review.rating),
        comment=review.comment or "",
        created_at=review.created_at,
        updated_at=review.updated_at,
    )
