"""Listing ORM — a vinyl record offered for sale (table `vinyl_records`).

Invariants:
    - id is UUID primary key
    - price is Numeric(10, 2) and positive (enforced in core/listing_rules.py)
    - images holds >= 2 object-store URLs at creation
    - status transitions: active -> sold, never back; sold rows are immutable

Design Decisions:
    - JSON column for images: ordered URL list, no per-image metadata to normalize
    - status column instead of deriving "sold" from orders: one indexed predicate
      for browse queries and the immutability guard
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Text, Integer, Numeric, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from vinyl_exchange.db.base import Base


class Listing(Base):
    """Vinyl record listing — owned by its seller."""
    __tablename__ = "vinyl_records"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    album_name: Mapped[str] = mapped_column(String(300), nullable=False)
    artist: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    condition: Mapped[str] = mapped_column(String(50), nullable=False)
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    genre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    release_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
