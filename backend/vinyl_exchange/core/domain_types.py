"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId, ListingId, OfferId, OrderId, ReviewId wrap UUIDs
    - Ratings are bounded 1–5 (MIN_RATING..MAX_RATING)
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: compare equal to the raw column values and serialize to JSON as-is
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
ListingId = NewType("ListingId", UUID)
OfferId = NewType("OfferId", UUID)
OrderId = NewType("OrderId", UUID)
ReviewId = NewType("ReviewId", UUID)


# ─── Value Bounds ────────────────────────────────────────────────

MIN_RATING: int = 1
MAX_RATING: int = 5
MIN_LISTING_IMAGES: int = 2


# ─── Enums ───────────────────────────────────────────────────────

class ListingStatus(str, Enum):
    """Listing availability — sold listings are immutable."""
    ACTIVE = "active"
    SOLD = "sold"


class OfferStatus(str, Enum):
    """Offer negotiation states — maps to DB `offers.status` column."""
    PENDING = "pending"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    DENIED = "denied"
    COMPLETED = "completed"


class OrderStatus(str, Enum):
    """Order lifecycle states — maps to DB `orders.status` column."""
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReviewerType(str, Enum):
    """Which side of the order wrote the review."""
    BUYER = "buyer"
    SELLER = "seller"


class SubscriptionTier(str, Enum):
    """Membership tiers — pro waives the buyer fee."""
    FREE = "free"
    PRO = "pro"


class PartyRole(str, Enum):
    """Which side of a negotiation the caller is viewing from."""
    BUYER = "buyer"
    SELLER = "seller"


class RatingCategory(str, Enum):
    """The four rating categories every review must fill."""
    OVERALL = "overall"
    COMMUNICATION = "communication"
    ITEM_ACCURACY = "item_accuracy"
    SHIPPING = "shipping"


class ChangeAction(str, Enum):
    """Kind of row change published on the change feed."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class PaymentStatus(str, Enum):
    """Processor-reported payment status of a checkout session."""
    PAID = "paid"
    UNPAID = "unpaid"
    NO_PAYMENT_REQUIRED = "no_payment_required"


class CheckoutSessionStatus(str, Enum):
    """Processor-reported lifecycle of a checkout session."""
    OPEN = "open"
    COMPLETE = "complete"
    EXPIRED = "expired"
