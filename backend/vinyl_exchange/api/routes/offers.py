"""Offer Routes — make offers, read negotiations, respond as seller or buyer.

Invariants:
    - Acting user is always the bearer identity, never a body field
    - Seller responses: /accept, /deny, /counter; buyer responses: /accept-counter,
      /decline-counter
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from vinyl_exchange.api.dependencies import get_current_user_id, get_offer_lifecycle
from vinyl_exchange.core.domain_types import OfferStatus, PartyRole, UserId
from vinyl_exchange.schemas.offer import CounterOfferRequest, OfferCreate, OfferResponse
from vinyl_exchange.services.offer_lifecycle import OfferLifecycle

router = APIRouter(prefix="/api/v1/offers", tags=["offers"])


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(
    body: OfferCreate,
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    return await offers.create_offer(body.listing_id, user_id, body.amount, body.message)


@router.get("", response_model=list[OfferResponse])
async def list_offers(
    role: PartyRole | None = Query(None),
    status_filter: OfferStatus | None = Query(None, alias="status"),
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    """Offers made (role=buyer), received (role=seller), or both."""
    return await offers.list_offers(user_id, role, status_filter)


@router.get("/{offer_id}", response_model=OfferResponse)
async def get_offer(
    offer_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    return await offers.get_offer(offer_id, user_id)


@router.post("/{offer_id}/accept", response_model=OfferResponse)
async def accept_offer(
    offer_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    return await offers.respond_accept(offer_id, user_id)


@router.post("/{offer_id}/deny", response_model=OfferResponse)
async def deny_offer(
    offer_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    return await offers.respond_deny(offer_id, user_id)


@router.post("/{offer_id}/counter", response_model=OfferResponse)
async def counter_offer(
    offer_id: UUID,
    body: CounterOfferRequest,
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    return await offers.respond_counter(
        offer_id, user_id, body.counter_amount, body.counter_message,
    )


@router.post("/{offer_id}/accept-counter", response_model=OfferResponse)
async def accept_counter(
    offer_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    return await offers.accept_counter(offer_id, user_id)


@router.post("/{offer_id}/decline-counter", response_model=OfferResponse)
async def decline_counter(
    offer_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    offers: OfferLifecycle = Depends(get_offer_lifecycle),
):
    return await offers.decline_counter(offer_id, user_id)
