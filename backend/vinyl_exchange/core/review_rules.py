"""Review Eligibility — who may review whom, when, and with which ratings.

Invariants:
    - All functions are PURE: no IO, no DB
    - reviewer_type is derived from the order, never trusted from input
    - Only completed orders can be reviewed
    - All four rating categories required, each an integer in [MIN_RATING, MAX_RATING]

Design Decisions:
    - Check order: party (AuthorizationError) -> declared identity (ValidationError)
      -> order state (StateError) -> ratings (ValidationError); duplicate detection
      needs the DB and lives in the shell
    - bool rejected as a rating even though it subclasses int
"""

from uuid import UUID

from vinyl_exchange.core.domain_types import (
    MAX_RATING, MIN_RATING, OrderStatus, RatingCategory, ReviewerType,
)
from vinyl_exchange.core.errors import (
    AuthorizationError, ErrorContext, StateError, ValidationError,
)
from vinyl_exchange.core.repository_protocols import OrderLike


def derive_reviewer_type(order: OrderLike, reviewer_id: UUID) -> ReviewerType:
    """Buyer or seller, depending on which side of the order the reviewer is."""
    if reviewer_id == order.buyer_id:
        return ReviewerType.BUYER
    if reviewer_id == order.seller_id:
        return ReviewerType.SELLER
    raise AuthorizationError(
        "Only the buyer or seller of this order can review it",
        ErrorContext(order_id=str(order.id), user_id=str(reviewer_id)),
    )


def counterparty_of(order: OrderLike, reviewer_type: ReviewerType) -> UUID:
    return order.seller_id if reviewer_type is ReviewerType.BUYER else order.buyer_id


def check_declared_identity(
    order: OrderLike,
    reviewer_type: ReviewerType,
    declared_type: str | None,
    declared_reviewee_id: UUID | None,
) -> None:
    """Optional client-supplied reviewer_type/reviewee_id must agree with the order."""
    if declared_type is not None and declared_type != reviewer_type.value:
        raise ValidationError(
            f"reviewer_type '{declared_type}' does not match your role on this order",
            field="reviewer_type",
        )
    if (
        declared_reviewee_id is not None
        and declared_reviewee_id != counterparty_of(order, reviewer_type)
    ):
        raise ValidationError(
            "reviewee_id must be the other party of the order",
            field="reviewee_id",
        )


def check_order_reviewable(order: OrderLike) -> None:
    if OrderStatus(order.status) is not OrderStatus.COMPLETED:
        raise StateError(
            "Reviews can only be left on completed orders",
            current_status=order.status,
            context=ErrorContext(order_id=str(order.id)),
        )


def validate_ratings(ratings: dict[str, int]) -> dict[str, int]:
    """Return ratings keyed by category value; raise on missing or out-of-range."""
    missing = [c.value for c in RatingCategory if ratings.get(c.value) is None]
    if missing:
        raise ValidationError(
            f"Ratings required for all categories; missing: {', '.join(missing)}",
            field="ratings",
        )
    validated = {}
    for category in RatingCategory:
        value = ratings[category.value]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(
                f"{category.value} rating must be an integer", field=category.value,
            )
        if not MIN_RATING <= value <= MAX_RATING:
            raise ValidationError(
                f"{category.value} rating must be between {MIN_RATING} and {MAX_RATING}",
                field=category.value,
            )
        validated[category.value] = value
    return validated
