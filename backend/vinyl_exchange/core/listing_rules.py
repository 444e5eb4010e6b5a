"""Listing Rules — creation requirements and the sold-is-immutable invariant.

Invariants:
    - A listing needs at least MIN_LISTING_IMAGES images and a positive price
    - Only the owning seller may edit or delete a listing
    - Sold listings are immutable; a listing with orders cannot be deleted
"""

from decimal import Decimal
from uuid import UUID

from vinyl_exchange.core.domain_types import MIN_LISTING_IMAGES, ListingStatus
from vinyl_exchange.core.errors import (
    AuthorizationError, ErrorContext, StateError, ValidationError,
)


def check_listing_images(images: list[str]) -> None:
    usable = [i for i in images if i and i.strip()]
    if len(usable) < MIN_LISTING_IMAGES:
        raise ValidationError(
            f"Please upload at least {MIN_LISTING_IMAGES} images of your record",
            field="images",
        )


def check_listing_price(price: Decimal) -> None:
    if price is None or not price.is_finite() or price <= 0:
        raise ValidationError("Price must be greater than zero", field="price")


def check_listing_owner(listing_id: UUID, seller_id: UUID, actor: UUID) -> None:
    if actor != seller_id:
        raise AuthorizationError(
            "Only the seller can modify this listing",
            ErrorContext(listing_id=str(listing_id), user_id=str(actor)),
        )


def check_listing_mutable(listing_id: UUID, status: str) -> None:
    if ListingStatus(status) is ListingStatus.SOLD:
        raise StateError(
            "Sold listings cannot be modified",
            current_status=status,
            context=ErrorContext(listing_id=str(listing_id)),
        )


def check_listing_open_for_offers(listing_id: UUID, status: str) -> None:
    if ListingStatus(status) is ListingStatus.SOLD:
        raise StateError(
            "This record has already been sold",
            current_status=status,
            context=ErrorContext(listing_id=str(listing_id)),
        )
