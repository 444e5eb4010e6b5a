"""Tests for offer transition guards — authorization, legal edges, amount reconciliation."""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from vinyl_exchange.core.domain_types import OfferStatus
from vinyl_exchange.core.errors import AuthorizationError, StateError, ValidationError
from vinyl_exchange.core.offer_transitions import (
    OfferAction, check_not_own_listing, check_offer_amount, offer_guard,
    plan_offer_transition, reconcile_accepted_amount,
)

SELLER = uuid4()
BUYER = uuid4()


@dataclass
class _Offer:
    status: str
    amount: Decimal = Decimal("50.00")
    counter_amount: Decimal | None = None
    id: UUID = uuid4()
    buyer_id: UUID = BUYER
    seller_id: UUID = SELLER


# ─── Seller responses ───────────────────────────────────────────

@pytest.mark.parametrize("status", ["pending", "countered"])
def test_seller_can_deny_from_negotiable_states(status):
    plan = plan_offer_transition(OfferAction.DENY, _Offer(status), SELLER)
    assert plan == {"status": "denied"}


def test_accept_from_pending_keeps_offer_amount():
    plan = plan_offer_transition(OfferAction.ACCEPT, _Offer("pending"), SELLER)
    assert plan == {"status": "accepted", "amount": Decimal("50.00")}


def test_accept_from_countered_reconciles_to_counter_amount():
    offer = _Offer("countered", counter_amount=Decimal("80.00"))
    plan = plan_offer_transition(OfferAction.ACCEPT, offer, SELLER)
    assert plan["status"] == "accepted"
    assert plan["amount"] == Decimal("80.00")


def test_counter_sets_fields_and_strips_blank_message():
    plan = plan_offer_transition(
        OfferAction.COUNTER, _Offer("pending"), SELLER,
        counter_amount=Decimal("80.00"), counter_message="   ",
    )
    assert plan == {
        "status": "countered",
        "counter_amount": Decimal("80.00"),
        "counter_message": None,
    }


def test_recounter_stays_countered():
    offer = _Offer("countered", counter_amount=Decimal("80.00"))
    plan = plan_offer_transition(
        OfferAction.COUNTER, offer, SELLER,
        counter_amount=Decimal("75.00"), counter_message="Final price",
    )
    assert plan["status"] == "countered"
    assert plan["counter_amount"] == Decimal("75.00")
    assert plan["counter_message"] == "Final price"


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), None])
def test_counter_requires_positive_amount(amount):
    with pytest.raises(ValidationError) as exc:
        plan_offer_transition(
            OfferAction.COUNTER, _Offer("pending"), SELLER, counter_amount=amount,
        )
    assert exc.value.field == "counter_amount"


@pytest.mark.parametrize("action", [OfferAction.ACCEPT, OfferAction.DENY, OfferAction.COUNTER])
@pytest.mark.parametrize("status", ["accepted", "denied", "completed"])
def test_seller_responses_fail_on_settled_offers(action, status):
    with pytest.raises(StateError) as exc:
        plan_offer_transition(
            action, _Offer(status), SELLER, counter_amount=Decimal("10.00"),
        )
    assert exc.value.current_status == status
    assert exc.value.http_status == 409


@pytest.mark.parametrize("actor", [BUYER, uuid4()])
def test_only_seller_may_respond(actor):
    with pytest.raises(AuthorizationError):
        plan_offer_transition(OfferAction.ACCEPT, _Offer("pending"), actor)


def test_authorization_checked_before_state():
    with pytest.raises(AuthorizationError):
        plan_offer_transition(OfferAction.DENY, _Offer("completed"), uuid4())


# ─── Buyer responses ────────────────────────────────────────────

def test_buyer_accept_counter_reconciles_amount():
    offer = _Offer("countered", counter_amount=Decimal("80.00"))
    plan = plan_offer_transition(OfferAction.ACCEPT_COUNTER, offer, BUYER)
    assert plan == {"status": "accepted", "amount": Decimal("80.00")}


def test_buyer_decline_counter_denies():
    offer = _Offer("countered", counter_amount=Decimal("80.00"))
    plan = plan_offer_transition(OfferAction.DECLINE_COUNTER, offer, BUYER)
    assert plan == {"status": "denied"}


@pytest.mark.parametrize("action", [OfferAction.ACCEPT_COUNTER, OfferAction.DECLINE_COUNTER])
def test_buyer_responses_require_countered(action):
    with pytest.raises(StateError):
        plan_offer_transition(action, _Offer("pending"), BUYER)


def test_seller_cannot_accept_own_counter():
    offer = _Offer("countered", counter_amount=Decimal("80.00"))
    with pytest.raises(AuthorizationError):
        plan_offer_transition(OfferAction.ACCEPT_COUNTER, offer, SELLER)


# ─── Settlement ─────────────────────────────────────────────────

def test_complete_only_from_accepted():
    assert plan_offer_transition(OfferAction.COMPLETE, _Offer("accepted"), None) == {
        "status": "completed",
    }
    with pytest.raises(StateError):
        plan_offer_transition(OfferAction.COMPLETE, _Offer("pending"), None)


# ─── Helpers ────────────────────────────────────────────────────

def test_reconcile_ignores_counter_amount_outside_countered():
    offer = _Offer("pending", counter_amount=Decimal("80.00"))
    assert reconcile_accepted_amount(offer) == Decimal("50.00")


def test_guard_includes_counter_amount_only_when_countered():
    assert offer_guard(_Offer("pending")) == {"status": "pending"}
    countered = _Offer("countered", counter_amount=Decimal("80.00"))
    assert offer_guard(countered) == {
        "status": "countered", "counter_amount": Decimal("80.00"),
    }


def test_own_listing_rejected():
    with pytest.raises(ValidationError):
        check_not_own_listing(SELLER, SELLER)
    check_not_own_listing(SELLER, BUYER)


def test_offer_amount_must_be_positive():
    with pytest.raises(ValidationError):
        check_offer_amount(Decimal("0.00"))
    check_offer_amount(Decimal("0.01"))


def test_statuses_round_trip_through_enum():
    assert OfferStatus("countered") is OfferStatus.COUNTERED
