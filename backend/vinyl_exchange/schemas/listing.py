"""Listing Schemas — create/update payloads and the public listing shape."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ListingCreate(BaseModel):
    album_name: str = Field(min_length=1, max_length=300)
    artist: str = Field(min_length=1, max_length=300)
    description: str | None = Field(None, max_length=5000)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    condition: str = Field(min_length=1, max_length=50)
    images: list[str] = Field(default_factory=list)
    genre: str | None = Field(None, max_length=100)
    release_year: int | None = Field(None, ge=1900, le=2100)

    @field_validator("album_name", "artist", "condition")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty or whitespace")
        return v


class ListingUpdate(BaseModel):
    """Partial update — only fields present in the request body are applied."""
    album_name: str | None = Field(None, min_length=1, max_length=300)
    artist: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = Field(None, max_length=5000)
    price: Decimal | None = Field(None, gt=0, max_digits=10, decimal_places=2)
    condition: str | None = Field(None, min_length=1, max_length=50)
    images: list[str] | None = None
    genre: str | None = Field(None, max_length=100)
    release_year: int | None = Field(None, ge=1900, le=2100)


class ListingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    seller_id: UUID
    album_name: str
    artist: str
    description: str | None
    price: Decimal
    condition: str
    images: list[str]
    genre: str | None
    release_year: int | None
    status: str
    created_at: datetime
    updated_at: datetime
