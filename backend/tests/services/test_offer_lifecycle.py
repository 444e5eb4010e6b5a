"""Offer Lifecycle — creation guards, negotiation transitions, scoped reads, change events.

Invariants exercised:
    - Own-listing offers and non-positive amounts are ValidationError
    - Sold listings refuse offers with StateError
    - Counter then accept charges the counter amount
    - Responses on denied/accepted/completed offers are StateError
    - Non-parties cannot see offers (NotFoundError)
    - A response that loses the race to a concurrent one is StateError; the winner stands
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update

from vinyl_exchange.core.domain_types import OfferStatus, PartyRole
from vinyl_exchange.core.errors import (
    AuthorizationError, NotFoundError, StateError, ValidationError,
)
from vinyl_exchange.models.listing import Listing
from vinyl_exchange.models.offer import Offer
from vinyl_exchange.services import offer_lifecycle
from vinyl_exchange.services.offer_lifecycle import OfferLifecycle

from tests.services.concurrency import run_before_next_write


# ─── create_offer ───────────────────────────────────────────────

async def test_create_offer_copies_seller_from_listing(offers, listing, buyer_id, seller_id, feed):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("100.00"), "  Would you take 100?  ")
    assert offer.status == OfferStatus.PENDING.value
    assert offer.seller_id == seller_id
    assert offer.buyer_id == buyer_id
    assert offer.amount == Decimal("100.00")
    assert offer.message == "Would you take 100?"
    assert offer.listing.album_name == "Kind of Blue"
    assert feed.events[-1].table == "offers"
    assert feed.events[-1].owners == {"buyer_id": buyer_id, "seller_id": seller_id}


async def test_offer_on_own_listing_rejected(offers, listing, seller_id):
    with pytest.raises(ValidationError):
        await offers.create_offer(listing.id, seller_id, Decimal("100.00"))


async def test_non_positive_offer_rejected(offers, listing, buyer_id):
    with pytest.raises(ValidationError):
        await offers.create_offer(listing.id, buyer_id, Decimal("0.00"))


async def test_offer_on_missing_listing_not_found(offers, buyer_id):
    with pytest.raises(NotFoundError):
        await offers.create_offer(uuid4(), buyer_id, Decimal("10.00"))


async def test_offer_on_sold_listing_rejected(offers, listing, buyer_id, test_db):
    listing.status = "sold"
    await test_db.commit()
    with pytest.raises(StateError):
        await offers.create_offer(listing.id, buyer_id, Decimal("10.00"))


async def test_multiple_pending_offers_allowed(offers, listing, buyer_id):
    await offers.create_offer(listing.id, buyer_id, Decimal("90.00"))
    await offers.create_offer(listing.id, buyer_id, Decimal("95.00"))
    mine = await offers.list_offers(buyer_id, PartyRole.BUYER)
    assert len(mine) == 2


# ─── Seller responses ───────────────────────────────────────────

async def test_counter_then_accept_charges_counter_amount(offers, listing, buyer_id, seller_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    countered = await offers.respond_counter(offer.id, seller_id, Decimal("80.00"), "Lowest I can go")
    assert countered.status == OfferStatus.COUNTERED.value
    assert countered.counter_amount == Decimal("80.00")
    assert countered.counter_message == "Lowest I can go"

    accepted = await offers.respond_accept(offer.id, seller_id)
    assert accepted.status == OfferStatus.ACCEPTED.value
    assert accepted.amount == Decimal("80.00")


async def test_recounter_overwrites_counter(offers, listing, buyer_id, seller_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    await offers.respond_counter(offer.id, seller_id, Decimal("90.00"))
    again = await offers.respond_counter(offer.id, seller_id, Decimal("85.00"))
    assert again.status == OfferStatus.COUNTERED.value
    assert again.counter_amount == Decimal("85.00")


async def test_deny_is_terminal(offers, listing, buyer_id, seller_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    denied = await offers.respond_deny(offer.id, seller_id)
    assert denied.status == OfferStatus.DENIED.value
    with pytest.raises(StateError):
        await offers.respond_accept(offer.id, seller_id)
    with pytest.raises(StateError):
        await offers.respond_counter(offer.id, seller_id, Decimal("60.00"))


async def test_accepted_offer_cannot_be_responded_again(offers, accepted_offer, seller_id):
    with pytest.raises(StateError):
        await offers.respond_deny(accepted_offer.id, seller_id)


async def test_buyer_cannot_respond_as_seller(offers, listing, buyer_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    with pytest.raises(AuthorizationError):
        await offers.respond_accept(offer.id, buyer_id)


async def test_failed_response_leaves_offer_unchanged(offers, listing, buyer_id, stranger_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    with pytest.raises(AuthorizationError):
        await offers.respond_deny(offer.id, stranger_id)
    reloaded = await offers.load(offer.id)
    assert reloaded.status == OfferStatus.PENDING.value


async def test_accept_loses_to_concurrent_deny(monkeypatch, offers, listing, buyer_id, seller_id, test_session_factory, feed):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("100.00"))
    offer_id = offer.id

    async def deny_elsewhere():
        async with test_session_factory() as other_db:
            await OfferLifecycle(other_db, feed).respond_deny(offer_id, seller_id)

    run_before_next_write(monkeypatch, offer_lifecycle, deny_elsewhere)

    with pytest.raises(StateError):
        await offers.respond_accept(offer_id, seller_id)

    current = await offers.load(offer_id)
    assert current.status == OfferStatus.DENIED.value
    assert feed.tables().count("offers") == 2


# ─── Buyer responses ────────────────────────────────────────────

async def test_buyer_accepts_counter(offers, listing, buyer_id, seller_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    await offers.respond_counter(offer.id, seller_id, Decimal("70.00"))
    accepted = await offers.accept_counter(offer.id, buyer_id)
    assert accepted.status == OfferStatus.ACCEPTED.value
    assert accepted.amount == Decimal("70.00")


async def test_buyer_declines_counter(offers, listing, buyer_id, seller_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    await offers.respond_counter(offer.id, seller_id, Decimal("70.00"))
    declined = await offers.decline_counter(offer.id, buyer_id)
    assert declined.status == OfferStatus.DENIED.value


async def test_accept_counter_requires_countered(offers, listing, buyer_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    with pytest.raises(StateError):
        await offers.accept_counter(offer.id, buyer_id)


# ─── Reads ──────────────────────────────────────────────────────

async def test_stranger_cannot_see_offer(offers, listing, buyer_id, seller_id, stranger_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    assert (await offers.get_offer(offer.id, buyer_id)).id == offer.id
    assert (await offers.get_offer(offer.id, seller_id)).id == offer.id
    with pytest.raises(NotFoundError):
        await offers.get_offer(offer.id, stranger_id)


async def test_list_offers_scoped_by_role(offers, listing, buyer_id, seller_id, stranger_id):
    await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    assert len(await offers.list_offers(seller_id, PartyRole.SELLER)) == 1
    assert len(await offers.list_offers(seller_id, PartyRole.BUYER)) == 0
    assert len(await offers.list_offers(buyer_id)) == 1
    assert await offers.list_offers(stranger_id) == []


async def test_offer_without_listing_surfaces_not_found(offers, buyer_id, seller_id, test_db):
    record = Listing(
        seller_id=seller_id, album_name="Blue Train", artist="John Coltrane",
        price=Decimal("40.00"), condition="VG", images=["a", "b"],
    )
    test_db.add(record)
    await test_db.commit()
    offer = await offers.create_offer(record.id, buyer_id, Decimal("35.00"))
    await test_db.execute(
        update(Offer).where(Offer.id == offer.id).values(listing_id=None),
    )
    await test_db.commit()

    with pytest.raises(NotFoundError):
        await offers.get_offer(offer.id, buyer_id)
    assert await offers.list_offers(buyer_id) == []
