"""Review ORM — a post-completion rating left by one party of an order about the other.

Invariants:
    - At most one review per (order_id, reviewer_id) — unique constraint
    - reviewer_type in {buyer, seller}, derived from the order
    - All four ratings are integers 1-5
    - Never updated after insert

Design Decisions:
    - DB-level unique constraint backs the service-level duplicate check: two concurrent
      submissions cannot both commit
    - reviewee_id denormalized: rating stats aggregate without joining orders
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String, Text, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from vinyl_exchange.db.base import Base


class Review(Base):
    """Review entity — immutable once written."""
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("order_id", "reviewer_id", name="uq_reviews_order_reviewer"),
        CheckConstraint("overall_rating BETWEEN 1 AND 5", name="ck_reviews_overall"),
        CheckConstraint("communication_rating BETWEEN 1 AND 5", name="ck_reviews_communication"),
        CheckConstraint("item_accuracy_rating BETWEEN 1 AND 5", name="ck_reviews_item_accuracy"),
        CheckConstraint("shipping_rating BETWEEN 1 AND 5", name="ck_reviews_shipping"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False,
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False,
    )
    reviewee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    reviewer_type: Mapped[str] = mapped_column(String(10), nullable=False)
    overall_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    communication_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    item_accuracy_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    review_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
