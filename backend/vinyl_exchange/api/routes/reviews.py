"""Review Routes — submit reviews, read a user's reviews and rating stats."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from vinyl_exchange.api.dependencies import get_current_user_id, get_review_ledger
from vinyl_exchange.core.domain_types import ReviewerType, UserId
from vinyl_exchange.schemas.review import RatingStatsResponse, ReviewCreate, ReviewResponse
from vinyl_exchange.services.review_ledger import ReviewLedger

router = APIRouter(prefix="/api/v1", tags=["reviews"])


@router.post(
    "/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED,
)
async def submit_review(
    body: ReviewCreate,
    user_id: UserId = Depends(get_current_user_id),
    ledger: ReviewLedger = Depends(get_review_ledger),
):
    return await ledger.submit_review(
        body.order_id, user_id, body.ratings(),
        review_text=body.review_text,
        reviewee_id=body.reviewee_id,
        reviewer_type=body.reviewer_type,
    )


@router.get("/users/{user_id}/reviews", response_model=list[ReviewResponse])
async def list_user_reviews(
    user_id: UUID,
    as_role: ReviewerType | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    ledger: ReviewLedger = Depends(get_review_ledger),
):
    """Reviews received by a user; as_role=seller keeps those left by buyers."""
    return await ledger.list_reviews_for(user_id, as_role, limit, offset)


@router.get("/users/{user_id}/rating-stats", response_model=RatingStatsResponse)
async def rating_stats(
    user_id: UUID, ledger: ReviewLedger = Depends(get_review_ledger),
):
    return await ledger.get_stats_for(user_id)
