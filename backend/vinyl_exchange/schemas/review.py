"""Review Schemas — review submission and rating aggregates.

Design Decisions:
    - Ratings are optional here so a missing category is reported by the ledger with
      the same VALIDATION_ERROR shape as an out-of-range one
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    order_id: UUID
    reviewee_id: UUID | None = None
    reviewer_type: Literal["buyer", "seller"] | None = None
    overall_rating: int | None = None
    communication_rating: int | None = None
    item_accuracy_rating: int | None = None
    shipping_rating: int | None = None
    review_text: str | None = Field(None, max_length=5000)

    def ratings(self) -> dict[str, int | None]:
        return {
            "overall": self.overall_rating,
            "communication": self.communication_rating,
            "item_accuracy": self.item_accuracy_rating,
            "shipping": self.shipping_rating,
        }


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: UUID
    reviewer_id: UUID
    reviewee_id: UUID
    reviewer_type: str
    overall_rating: int
    communication_rating: int
    item_accuracy_rating: int
    shipping_rating: int
    review_text: str | None
    created_at: datetime


class RatingStatsResponse(BaseModel):
    overall_avg: float
    communication_avg: float
    item_accuracy_avg: float
    shipping_avg: float
    total_reviews: int
