"""Offer Schemas — offer creation, counter-offers and the negotiation view.

Invariants:
    - amount / counter_amount > 0 with at most 2 decimal places
    - OfferResponse embeds a listing summary: an offer is never rendered without its record
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OfferCreate(BaseModel):
    listing_id: UUID
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    message: str | None = Field(None, max_length=2000)


class CounterOfferRequest(BaseModel):
    counter_amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    counter_message: str | None = Field(None, max_length=2000)


class ListingSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    album_name: str
    artist: str
    price: Decimal
    images: list[str]
    status: str


class OfferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    listing_id: UUID
    buyer_id: UUID
    seller_id: UUID
    amount: Decimal
    message: str | None
    status: str
    counter_amount: Decimal | None
    counter_message: str | None
    created_at: datetime
    updated_at: datetime
    listing: ListingSummary
