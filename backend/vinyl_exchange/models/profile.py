"""Profile ORM — public user profile and membership tier.

Invariants:
    - user_id unique: one profile per authenticated user
    - total_sales / total_purchases / seller_rating maintained outside this service (read-only here)
    - subscription_tier + subscribed decide fee waivers (core/checkout_terms.is_pro_member)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, Float, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from vinyl_exchange.db.base import Base


class Profile(Base):
    """User profile entity."""
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, unique=True,
    )
    username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    seller_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_sales: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_purchases: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subscription_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default="free",
    )
    subscribed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
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
