"""Offer Transition Enforcement — who may move an offer where, and with which field changes.

Invariants:
    - All functions are PURE: no IO, no async, no DB — they raise or return a change plan
    - Authorization is checked before state: a stranger learns nothing about offer status
    - Seller responses (accept/deny/counter) only from pending or countered
    - Buyer responses (accept_counter/decline_counter) only from countered
    - accepted -> completed is reserved for settlement; denied and completed are terminal
    - Accepting out of countered reconciles amount to counter_amount

Design Decisions:
    - Plan = dict of column values: the shell applies it with a compare-and-set UPDATE
      guarded on the fields the plan was derived from (status, counter_amount)
    - Re-counter stays in countered with overwritten counter fields, no separate state
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from vinyl_exchange.core.domain_types import OfferStatus, PartyRole, UserId
from vinyl_exchange.core.errors import (
    AuthorizationError, ErrorContext, StateError, ValidationError,
)
from vinyl_exchange.core.repository_protocols import OfferLike


class OfferAction(str, Enum):
    """Every mutation an offer can undergo."""
    ACCEPT = "accept"
    DENY = "deny"
    COUNTER = "counter"
    ACCEPT_COUNTER = "accept_counter"
    DECLINE_COUNTER = "decline_counter"
    COMPLETE = "complete"


@dataclass(frozen=True)
class OfferRule:
    actor: PartyRole | None  # None: system-only (settlement)
    sources: frozenset[OfferStatus]
    target: OfferStatus


_NEGOTIABLE = frozenset({OfferStatus.PENDING, OfferStatus.COUNTERED})

OFFER_RULES: dict[OfferAction, OfferRule] = {
    OfferAction.ACCEPT: OfferRule(PartyRole.SELLER, _NEGOTIABLE, OfferStatus.ACCEPTED),
    OfferAction.DENY: OfferRule(PartyRole.SELLER, _NEGOTIABLE, OfferStatus.DENIED),
    OfferAction.COUNTER: OfferRule(PartyRole.SELLER, _NEGOTIABLE, OfferStatus.COUNTERED),
    OfferAction.ACCEPT_COUNTER: OfferRule(
        PartyRole.BUYER, frozenset({OfferStatus.COUNTERED}), OfferStatus.ACCEPTED,
    ),
    OfferAction.DECLINE_COUNTER: OfferRule(
        PartyRole.BUYER, frozenset({OfferStatus.COUNTERED}), OfferStatus.DENIED,
    ),
    OfferAction.COMPLETE: OfferRule(
        None, frozenset({OfferStatus.ACCEPTED}), OfferStatus.COMPLETED,
    ),
}

TERMINAL_OFFER_STATUSES = frozenset({OfferStatus.DENIED, OfferStatus.COMPLETED})


def check_offer_amount(amount: Decimal, field: str = "amount") -> None:
    """Offer and counter amounts must be strictly positive."""
    if amount is None or not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field} must be greater than zero", field=field)


def check_not_own_listing(listing_seller_id: UserId, buyer_id: UserId) -> None:
    """A seller cannot make an offer on their own listing."""
    if listing_seller_id == buyer_id:
        raise ValidationError(
            "You cannot make an offer on your own listing", field="listing_id",
        )


def check_offer_actor(rule: OfferRule, offer: OfferLike, actor: UserId) -> None:
    """Raise AuthorizationError unless actor is the party the rule requires."""
    if rule.actor is PartyRole.SELLER and actor != offer.seller_id:
        raise AuthorizationError(
            "Only the seller can respond to this offer",
            ErrorContext(offer_id=str(offer.id), user_id=str(actor)),
        )
    if rule.actor is PartyRole.BUYER and actor != offer.buyer_id:
        raise AuthorizationError(
            "Only the buyer can respond to this counter-offer",
            ErrorContext(offer_id=str(offer.id), user_id=str(actor)),
        )


def check_offer_state(rule: OfferRule, offer: OfferLike) -> None:
    """Raise StateError unless the offer's current status is a valid source."""
    current = OfferStatus(offer.status)
    if current not in rule.sources:
        allowed = ", ".join(sorted(s.value for s in rule.sources))
        raise StateError(
            f"Offer is {current.value}; expected one of: {allowed}",
            current_status=current.value,
            context=ErrorContext(offer_id=str(offer.id)),
        )


def reconcile_accepted_amount(offer: OfferLike) -> Decimal:
    """Amount that becomes binding on acceptance: the counter if one is on the table."""
    if OfferStatus(offer.status) is OfferStatus.COUNTERED and offer.counter_amount is not None:
        return offer.counter_amount
    return offer.amount


def plan_offer_transition(
    action: OfferAction,
    offer: OfferLike,
    actor: UserId | None,
    counter_amount: Decimal | None = None,
    counter_message: str | None = None,
) -> dict:
    """Validate an offer mutation and return the column values to write."""
    rule = OFFER_RULES[action]
    if rule.actor is not None:
        check_offer_actor(rule, offer, actor)
    check_offer_state(rule, offer)

    plan: dict = {"status": rule.target.value}
    if action is OfferAction.COUNTER:
        check_offer_amount(counter_amount, field="counter_amount")
        plan["counter_amount"] = counter_amount
        plan["counter_message"] = (counter_message or "").strip() or None
    elif rule.target is OfferStatus.ACCEPTED:
        plan["amount"] = reconcile_accepted_amount(offer)
    return plan


def offer_guard(offer: OfferLike) -> dict:
    """Columns a compare-and-set must match for a plan derived from this snapshot."""
    guard = {"status": offer.status}
    if OfferStatus(offer.status) is OfferStatus.COUNTERED:
        guard["counter_amount"] = offer.counter_amount
    return guard
