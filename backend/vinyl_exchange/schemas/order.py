"""Order Schemas — fulfilment payloads and the order view."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ShipOrderRequest(BaseModel):
    tracking_number: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=2000)


class CancelOrderRequest(BaseModel):
    notes: str | None = Field(None, max_length=2000)


class OrderListingSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    album_name: str
    artist: str
    images: list[str]


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    listing_id: UUID
    offer_id: UUID
    buyer_id: UUID
    seller_id: UUID
    offer_amount: Decimal
    buyer_fee: Decimal
    seller_fee: Decimal
    total_amount: Decimal
    status: str
    tracking_number: str | None
    notes: str | None
    shipping_address: str | None
    created_at: datetime
    updated_at: datetime
    listing: OrderListingSummary
