"""Offer ORM — a buyer's proposed price for a listing and the seller's response.

Invariants:
    - buyer_id != seller_id (enforced in core/offer_transitions.py before insert)
    - seller_id denormalized from the listing at creation time
    - amount > 0; when accepted out of countered, amount == counter_amount
    - status transitions: pending -> countered/accepted/denied, countered -> countered/accepted/denied,
      accepted -> completed (settlement only)

Design Decisions:
    - listing_id nullable with ON DELETE SET NULL: a deleted listing leaves the offer row
      as history, and loaders reject it with NotFoundError instead of rendering half an offer
    - listing relationship lazy="selectin": async sessions cannot lazy-load on attribute access
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from vinyl_exchange.db.base import Base
from vinyl_exchange.models.listing import Listing


class Offer(Base):
    """Offer entity — one negotiation thread between a buyer and a seller."""
    __tablename__ = "offers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    listing_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("vinyl_records.id", ondelete="SET NULL"),
        nullable=True,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    counter_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True,
    )
    counter_message: Mapped[str | None] = mapped_column(Text, nullable=True)
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

    # Relationships
    listing: Mapped[Listing | None] = relationship(
        Listing, lazy="selectin",
    )
