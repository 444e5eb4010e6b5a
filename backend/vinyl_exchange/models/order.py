"""Order ORM — the financial and shipping record of a settled offer.

Invariants:
    - total_amount == offer_amount + buyer_fee (fees copied verbatim from the checkout quote)
    - payment_session_id unique: verification looks orders up by it
    - At most one non-cancelled order per listing (partial unique index uq_orders_open_listing)
    - status transitions: pending_payment -> paid -> shipped -> completed, any non-terminal -> cancelled
    - Never deleted

Design Decisions:
    - offer_id stored on the row (not only in processor metadata): verification
      completes the offer without trusting data that round-tripped through Stripe
    - shipping_address as free text: formatted by the processor adapter, display-only here
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Text, Numeric, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID

from vinyl_exchange.db.base import Base
from vinyl_exchange.models.listing import Listing


class Order(Base):
    """Order entity — created at checkout, advanced by payment and the seller."""
    __tablename__ = "orders"
    __table_args__ = (
        Index(
            "uq_orders_open_listing", "listing_id", unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    listing_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vinyl_records.id"), nullable=False,
    )
    offer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("offers.id"), nullable=False, index=True,
    )
    buyer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True,
    )
    offer_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    buyer_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    seller_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending_payment",
    )
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_session_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True,
    )
    payment_intent_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True,
    )
    shipping_address: Mapped[str | None] = mapped_column(Text, nullable=True)
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
    listing: Mapped[Listing] = relationship(Listing, lazy="selectin")
