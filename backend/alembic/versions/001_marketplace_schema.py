"""Marketplace schema — vinyl_records, offers, orders, reviews, profiles.

Revision ID: 001_marketplace
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_marketplace"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("seller_rating", sa.Float, nullable=True),
        sa.Column("total_sales", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_purchases", sa.Integer, nullable=False, server_default="0"),
        sa.Column("subscription_tier", sa.String(20), nullable=False, server_default="free"),
        sa.Column("subscribed", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "vinyl_records",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("seller_id", UUID(as_uuid=True), nullable=False),
        sa.Column("album_name", sa.String(300), nullable=False),
        sa.Column("artist", sa.String(300), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("condition", sa.String(50), nullable=False),
        sa.Column("images", sa.JSON, nullable=False),
        sa.Column("genre", sa.String(100), nullable=True),
        sa.Column("release_year", sa.Integer, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("price > 0", name="ck_vinyl_records_price_positive"),
    )
    op.create_index("ix_vinyl_records_seller_id", "vinyl_records", ["seller_id"])
    op.create_index("ix_vinyl_records_status", "vinyl_records", ["status"])

    op.create_table(
        "offers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "listing_id", UUID(as_uuid=True),
            sa.ForeignKey("vinyl_records.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("buyer_id", UUID(as_uuid=True), nullable=False),
        sa.Column("seller_id", UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("message", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("counter_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("counter_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0", name="ck_offers_amount_positive"),
        sa.CheckConstraint("buyer_id <> seller_id", name="ck_offers_not_own_listing"),
    )
    op.create_index("ix_offers_buyer_id", "offers", ["buyer_id"])
    op.create_index("ix_offers_seller_id", "offers", ["seller_id"])

    op.create_table(
        "orders",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("listing_id", UUID(as_uuid=True), sa.ForeignKey("vinyl_records.id"), nullable=False),
        sa.Column("offer_id", UUID(as_uuid=True), sa.ForeignKey("offers.id"), nullable=False),
        sa.Column("buyer_id", UUID(as_uuid=True), nullable=False),
        sa.Column("seller_id", UUID(as_uuid=True), nullable=False),
        sa.Column("offer_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("buyer_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("seller_fee", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending_payment"),
        sa.Column("tracking_number", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("payment_session_id", sa.String(255), nullable=True, unique=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("shipping_address", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_amount = offer_amount + buyer_fee", name="ck_orders_total"),
    )
    op.create_index("ix_orders_offer_id", "orders", ["offer_id"])
    op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"])
    op.create_index("ix_orders_seller_id", "orders", ["seller_id"])
    op.create_index(
        "uq_orders_open_listing", "orders", ["listing_id"], unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "reviews",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("order_id", UUID(as_uuid=True), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("reviewer_id", UUID(as_uuid=True), nullable=False),
        sa.Column("reviewee_id", UUID(as_uuid=True), nullable=False),
        sa.Column("reviewer_type", sa.String(10), nullable=False),
        sa.Column("overall_rating", sa.Integer, nullable=False),
        sa.Column("communication_rating", sa.Integer, nullable=False),
        sa.Column("item_accuracy_rating", sa.Integer, nullable=False),
        sa.Column("shipping_rating", sa.Integer, nullable=False),
        sa.Column("review_text", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("order_id", "reviewer_id", name="uq_reviews_order_reviewer"),
        sa.CheckConstraint("overall_rating BETWEEN 1 AND 5", name="ck_reviews_overall"),
        sa.CheckConstraint("communication_rating BETWEEN 1 AND 5", name="ck_reviews_communication"),
        sa.CheckConstraint("item_accuracy_rating BETWEEN 1 AND 5", name="ck_reviews_item_accuracy"),
        sa.CheckConstraint("shipping_rating BETWEEN 1 AND 5", name="ck_reviews_shipping"),
    )
    op.create_index("ix_reviews_reviewee_id", "reviews", ["reviewee_id"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("orders")
    op.drop_table("offers")
    op.drop_table("vinyl_records")
    op.drop_table("profiles")
