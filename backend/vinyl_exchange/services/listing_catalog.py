"""Listing Catalog — create, browse, edit and withdraw vinyl record listings.

Invariants:
    - Only the owning seller edits or deletes; sold listings are immutable
    - Edits are compare-and-set on status='active': a sale racing an edit wins
    - A listing referenced by any order is never deleted (orders keep their FK)
    - Offers on a deleted listing lose their listing_id (ON DELETE SET NULL semantics)

Design Decisions:
    - Public browse shows active listings only; filtering by seller shows every status
      so sellers see their sold history
"""

import logging
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vinyl_exchange.core.domain_types import ChangeAction, ListingStatus
from vinyl_exchange.core.errors import ErrorContext, NotFoundError, StateError
from vinyl_exchange.core.listing_rules import (
    check_listing_images, check_listing_mutable, check_listing_owner,
    check_listing_price,
)
from vinyl_exchange.core.repository_protocols import ChangePublisher
from vinyl_exchange.models.listing import Listing
from vinyl_exchange.models.offer import Offer
from vinyl_exchange.models.order import Order
from vinyl_exchange.services.change_feed import row_event
from vinyl_exchange.services.conditional_update import compare_and_set, reload

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "album_name", "artist", "description", "price", "condition",
    "images", "genre", "release_year",
)


class ListingCatalog:
    """Seller-owned listings."""

    def __init__(self, db: AsyncSession, feed: ChangePublisher):
        self.db = db
        self.feed = feed

    async def create_listing(self, seller_id: UUID, data: dict) -> Listing:
        check_listing_price(data.get("price"))
        check_listing_images(data.get("images") or [])
        listing = Listing(
            seller_id=seller_id,
            status=ListingStatus.ACTIVE.value,
            **{k: data.get(k) for k in EDITABLE_FIELDS},
        )
        self.db.add(listing)
        await self.db.commit()
        await self.db.refresh(listing)
        logger.info("Listing created", extra={"listing_id": str(listing.id)})
        self.feed.publish(row_event(
            "vinyl_records", listing.id, ChangeAction.INSERT, seller_id=seller_id,
        ))
        return listing

    async def get_listing(self, listing_id: UUID) -> Listing:
        listing = await reload(self.db, Listing, listing_id)
        if listing is None:
            raise NotFoundError("Listing", str(listing_id))
        return listing

    async def list_listings(
        self,
        seller_id: UUID | None = None,
        genre: str | None = None,
        artist: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Listing]:
        query = select(Listing).order_by(Listing.created_at.desc())
        if seller_id is not None:
            query = query.where(Listing.seller_id == seller_id)
        else:
            query = query.where(Listing.status == ListingStatus.ACTIVE.value)
        if genre:
            query = query.where(func.lower(Listing.genre) == genre.lower())
        if artist:
            query = query.where(Listing.artist.ilike(f"%{artist}%"))
        result = await self.db.execute(
            query.limit(limit).offset(offset)
            .execution_options(populate_existing=True),
        )
        return list(result.scalars().all())

    async def update_listing(
        self, listing_id: UUID, acting_seller: UUID, changes: dict,
    ) -> Listing:
        listing = await self.get_listing(listing_id)
        check_listing_owner(listing.id, listing.seller_id, acting_seller)
        check_listing_mutable(listing.id, listing.status)

        values = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        if "price" in values:
            check_listing_price(values["price"])
        if "images" in values:
            check_listing_images(values["images"] or [])
        if not values:
            return listing

        applied = await compare_and_set(
            self.db, Listing, listing.id,
            guard={"status": ListingStatus.ACTIVE}, values=values,
        )
        if not applied:
            await self.db.rollback()
            current = await self.get_listing(listing_id)
            check_listing_mutable(current.id, current.status)
            raise StateError(
                "Listing changed while updating; reload and retry",
                current_status=current.status,
                context=ErrorContext(listing_id=str(listing_id)),
            )
        await self.db.commit()
        self.feed.publish(row_event(
            "vinyl_records", listing.id, ChangeAction.UPDATE, seller_id=listing.seller_id,
        ))
        return await self.get_listing(listing_id)

    async def delete_listing(self, listing_id: UUID, acting_seller: UUID) -> None:
        listing = await self.get_listing(listing_id)
        check_listing_owner(listing.id, listing.seller_id, acting_seller)
        check_listing_mutable(listing.id, listing.status)

        order_count = await self.db.scalar(
            select(func.count()).select_from(Order).where(Order.listing_id == listing.id),
        )
        if order_count:
            raise StateError(
                "Listings with orders cannot be deleted",
                current_status=listing.status,
                context=ErrorContext(listing_id=str(listing.id)),
            )

        await self.db.execute(
            update(Offer)
            .where(Offer.listing_id == listing.id)
            .values(listing_id=None)
            .execution_options(synchronize_session=False),
        )
        result = await self.db.execute(
            delete(Listing)
            .where(Listing.id == listing.id)
            .where(Listing.status == ListingStatus.ACTIVE.value)
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise StateError(
                "Sold listings cannot be modified",
                current_status=ListingStatus.SOLD.value,
                context=ErrorContext(listing_id=str(listing.id)),
            )
        await self.db.commit()
        logger.info("Listing deleted", extra={"listing_id": str(listing.id)})
        self.feed.publish(row_event(
            "vinyl_records", listing.id, ChangeAction.DELETE, seller_id=listing.seller_id,
        ))
