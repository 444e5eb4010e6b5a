"""Offer Lifecycle — creation and the buyer/seller negotiation state machine.

Invariants:
    - Every mutation is plan (core/offer_transitions.py) + one compare-and-set UPDATE
      guarded on the status (and counter_amount) the plan was derived from
    - A lost race is re-read and reported as NotFoundError or StateError, never overwritten
    - Reads are scoped to the two parties: anyone else gets NotFoundError
    - An offer whose listing is gone surfaces as NotFoundError
    - Change events published only after commit

Design Decisions:
    - accepted -> completed is not exposed here: settlement stages it inside its own
      transaction through stage_completion()
    - list_offers drops rows whose listing was deleted instead of failing the whole page
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vinyl_exchange.core.domain_types import (
    ChangeAction, OfferStatus, PartyRole, UserId,
)
from vinyl_exchange.core.errors import ErrorContext, NotFoundError, StateError
from vinyl_exchange.core.listing_rules import check_listing_open_for_offers
from vinyl_exchange.core.offer_transitions import (
    OfferAction, check_not_own_listing, check_offer_amount, offer_guard,
    plan_offer_transition,
)
from vinyl_exchange.core.repository_protocols import ChangePublisher
from vinyl_exchange.models.listing import Listing
from vinyl_exchange.models.offer import Offer
from vinyl_exchange.services.change_feed import row_event
from vinyl_exchange.services.conditional_update import compare_and_set, reload

logger = logging.getLogger(__name__)


class OfferLifecycle:
    """Offer creation, scoped reads, and seller/buyer responses."""

    def __init__(self, db: AsyncSession, feed: ChangePublisher):
        self.db = db
        self.feed = feed

    # ─── Reads ──────────────────────────────────────────────────

    async def load(self, offer_id: UUID) -> Offer:
        """Fresh offer row with its listing. NotFoundError if either is missing."""
        offer = await reload(self.db, Offer, offer_id)
        if offer is None or offer.listing is None:
            raise NotFoundError("Offer", str(offer_id), ErrorContext(offer_id=str(offer_id)))
        return offer

    async def get_offer(self, offer_id: UUID, viewer: UserId) -> Offer:
        offer = await self.load(offer_id)
        if viewer not in (offer.buyer_id, offer.seller_id):
            raise NotFoundError("Offer", str(offer_id))
        return offer

    async def list_offers(
        self,
        viewer: UserId,
        role: PartyRole | None = None,
        status: OfferStatus | None = None,
    ) -> list[Offer]:
        """Offers the viewer made (buyer), received (seller), or both; newest first."""
        query = select(Offer).where(Offer.listing_id.is_not(None))
        if role is PartyRole.BUYER:
            query = query.where(Offer.buyer_id == viewer)
        elif role is PartyRole.SELLER:
            query = query.where(Offer.seller_id == viewer)
        else:
            query = query.where(or_(Offer.buyer_id == viewer, Offer.seller_id == viewer))
        if status is not None:
            query = query.where(Offer.status == status.value)
        result = await self.db.execute(
            query.order_by(Offer.created_at.desc())
            .execution_options(populate_existing=True),
        )
        return [o for o in result.scalars().all() if o.listing is not None]

    # ─── Creation ───────────────────────────────────────────────

    async def create_offer(
        self,
        listing_id: UUID,
        buyer_id: UserId,
        amount: Decimal,
        message: str | None = None,
    ) -> Offer:
        listing = await reload(self.db, Listing, listing_id)
        if listing is None:
            raise NotFoundError("Listing", str(listing_id))
        check_not_own_listing(listing.seller_id, buyer_id)
        check_offer_amount(amount)
        check_listing_open_for_offers(listing.id, listing.status)

        offer = Offer(
            listing_id=listing.id,
            buyer_id=buyer_id,
            seller_id=listing.seller_id,
            amount=amount,
            message=(message or "").strip() or None,
            status=OfferStatus.PENDING.value,
        )
        self.db.add(offer)
        await self.db.commit()
        logger.info(
            "Offer created",
            extra={"offer_id": str(offer.id), "listing_id": str(listing.id)},
        )
        self.publish(offer, ChangeAction.INSERT)
        return await self.load(offer.id)

    # ─── Seller responses ───────────────────────────────────────

    async def respond_accept(self, offer_id: UUID, acting_seller: UserId) -> Offer:
        return await self._transition(offer_id, acting_seller, OfferAction.ACCEPT)

    async def respond_deny(self, offer_id: UUID, acting_seller: UserId) -> Offer:
        return await self._transition(offer_id, acting_seller, OfferAction.DENY)

    async def respond_counter(
        self,
        offer_id: UUID,
        acting_seller: UserId,
        counter_amount: Decimal,
        counter_message: str | None = None,
    ) -> Offer:
        return await self._transition(
            offer_id, acting_seller, OfferAction.COUNTER,
            counter_amount=counter_amount, counter_message=counter_message,
        )

    # ─── Buyer responses ────────────────────────────────────────

    async def accept_counter(self, offer_id: UUID, acting_buyer: UserId) -> Offer:
        return await self._transition(offer_id, acting_buyer, OfferAction.ACCEPT_COUNTER)

    async def decline_counter(self, offer_id: UUID, acting_buyer: UserId) -> Offer:
        return await self._transition(offer_id, acting_buyer, OfferAction.DECLINE_COUNTER)

    # ─── Settlement hooks (no commit) ───────────────────────────

    async def stage_completion(self, offer_id: UUID) -> bool:
        """accepted -> completed inside the caller's transaction. False if already moved."""
        return await compare_and_set(
            self.db, Offer, offer_id,
            guard={"status": OfferStatus.ACCEPTED},
            values={"status": OfferStatus.COMPLETED.value},
        )

    async def stage_still_accepted(self, offer_id: UUID) -> bool:
        """Touch an accepted offer so a concurrent response cannot slip past checkout."""
        return await compare_and_set(
            self.db, Offer, offer_id,
            guard={"status": OfferStatus.ACCEPTED},
            values={"status": OfferStatus.ACCEPTED.value},
        )

    # ─── Internals ──────────────────────────────────────────────

    async def _transition(
        self, offer_id: UUID, actor: UserId, action: OfferAction, **fields,
    ) -> Offer:
        offer = await self.load(offer_id)
        plan = plan_offer_transition(action, offer, actor, **fields)
        applied = await compare_and_set(
            self.db, Offer, offer.id, guard=offer_guard(offer), values=plan,
        )
        if not applied:
            await self.db.rollback()
            current = await self.load(offer_id)
            # Re-plan against the fresh row so the caller sees the real reason
            plan_offer_transition(action, current, actor, **fields)
            raise StateError(
                "Offer changed while responding; reload and retry",
                current_status=current.status,
                context=ErrorContext(offer_id=str(offer_id)),
            )
        await self.db.commit()
        offer = await self.load(offer_id)
        logger.info(
            f"Offer {action.value} -> {offer.status}",
            extra={"offer_id": str(offer.id), "user_id": str(actor)},
        )
        self.publish(offer, ChangeAction.UPDATE)
        return offer

    def publish(self, offer: Offer, action: ChangeAction) -> None:
        self.feed.publish(row_event(
            "offers", offer.id, action,
            buyer_id=offer.buyer_id, seller_id=offer.seller_id,
        ))
