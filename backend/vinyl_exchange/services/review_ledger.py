"""Review Ledger — post-completion reviews and per-user rating aggregates.

Invariants:
    - One review per (order, reviewer): checked up front, backed by uq_reviews_order_reviewer
    - reviewer_type and reviewee derived from the order, never trusted from input
    - Stats come from ONE aggregate query; shaping lives in core/rating_stats.py

Design Decisions:
    - IntegrityError on insert mapped to ConflictError here (not DatabaseError): a concurrent
      duplicate is a client-visible 409, not an infrastructure failure
"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vinyl_exchange.core.domain_types import ChangeAction, ReviewerType, UserId
from vinyl_exchange.core.errors import ConflictError, ErrorContext, NotFoundError
from vinyl_exchange.core.rating_stats import summarize_rating_stats
from vinyl_exchange.core.repository_protocols import ChangePublisher
from vinyl_exchange.core.review_rules import (
    check_declared_identity, check_order_reviewable, counterparty_of,
    derive_reviewer_type, validate_ratings,
)
from vinyl_exchange.models.order import Order
from vinyl_exchange.models.review import Review
from vinyl_exchange.services.change_feed import row_event
from vinyl_exchange.services.conditional_update import reload

logger = logging.getLogger(__name__)


class ReviewLedger:
    """Review submission and reads."""

    def __init__(self, db: AsyncSession, feed: ChangePublisher):
        self.db = db
        self.feed = feed

    async def submit_review(
        self,
        order_id: UUID,
        reviewer_id: UserId,
        ratings: dict[str, int],
        review_text: str | None = None,
        reviewee_id: UUID | None = None,
        reviewer_type: str | None = None,
    ) -> Review:
        order = await reload(self.db, Order, order_id)
        if order is None:
            raise NotFoundError("Order", str(order_id), ErrorContext(order_id=str(order_id)))
        derived = derive_reviewer_type(order, reviewer_id)
        check_declared_identity(order, derived, reviewer_type, reviewee_id)
        check_order_reviewable(order)
        validated = validate_ratings(ratings)

        ctx = ErrorContext(order_id=str(order.id), user_id=str(reviewer_id))
        existing = await self.db.scalar(
            select(func.count())
            .select_from(Review)
            .where(Review.order_id == order.id)
            .where(Review.reviewer_id == reviewer_id),
        )
        if existing:
            raise ConflictError("You have already reviewed this order", ctx)

        review = Review(
            order_id=order.id,
            reviewer_id=reviewer_id,
            reviewee_id=counterparty_of(order, derived),
            reviewer_type=derived.value,
            overall_rating=validated["overall"],
            communication_rating=validated["communication"],
            item_accuracy_rating=validated["item_accuracy"],
            shipping_rating=validated["shipping"],
            review_text=(review_text or "").strip() or None,
        )
        self.db.add(review)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("You have already reviewed this order", ctx)

        logger.info(
            "Review submitted",
            extra={"review_id": str(review.id), "order_id": str(order.id)},
        )
        self.feed.publish(row_event(
            "reviews", review.id, ChangeAction.INSERT,
            reviewer_id=review.reviewer_id, reviewee_id=review.reviewee_id,
        ))
        return review

    async def get_stats_for(self, user_id: UUID) -> dict:
        row = (await self.db.execute(
            select(
                func.count(Review.id),
                func.avg(Review.overall_rating),
                func.avg(Review.communication_rating),
                func.avg(Review.item_accuracy_rating),
                func.avg(Review.shipping_rating),
            ).where(Review.reviewee_id == user_id),
        )).one()
        total, overall, communication, item_accuracy, shipping = row
        return summarize_rating_stats(total, {
            "overall": overall,
            "communication": communication,
            "item_accuracy": item_accuracy,
            "shipping": shipping,
        })

    async def list_reviews_for(
        self,
        user_id: UUID,
        as_role: ReviewerType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Review]:
        """Reviews received by user_id, newest first.

        as_role=SELLER keeps reviews written by buyers (the user was selling), and vice versa.
        """
        query = select(Review).where(Review.reviewee_id == user_id)
        if as_role is ReviewerType.SELLER:
            query = query.where(Review.reviewer_type == ReviewerType.BUYER.value)
        elif as_role is ReviewerType.BUYER:
            query = query.where(Review.reviewer_type == ReviewerType.SELLER.value)
        query = query.order_by(Review.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())
