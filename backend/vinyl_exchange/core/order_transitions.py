"""Order Transition Enforcement — payment, shipment, completion and cancellation guards.

Invariants:
    - All functions are PURE: raise on violation, return the column values to write
    - pending_payment -> paid happens only through payment verification (no actor)
    - paid -> shipped -> completed are seller actions
    - cancelled is reachable from every non-terminal state; completed and cancelled are terminal
    - Buyer may cancel only before payment; after payment only the seller may cancel

Design Decisions:
    - Same rule-table shape as offer_transitions: one place lists every legal edge
    - Empty tracking_number/notes normalized to None so the UI can send blank fields
"""

from dataclasses import dataclass
from enum import Enum

from vinyl_exchange.core.domain_types import OrderStatus, PartyRole, UserId
from vinyl_exchange.core.errors import AuthorizationError, ErrorContext, StateError
from vinyl_exchange.core.repository_protocols import OrderLike


class OrderAction(str, Enum):
    MARK_PAID = "mark_paid"
    SHIP = "ship"
    COMPLETE = "complete"
    CANCEL = "cancel"


@dataclass(frozen=True)
class OrderRule:
    actor: PartyRole | None
    sources: frozenset[OrderStatus]
    target: OrderStatus


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})
CANCELLABLE_STATUSES = frozenset(set(OrderStatus) - TERMINAL_ORDER_STATUSES)
# Statuses at or after payment confirmation
SETTLED_STATUSES = frozenset({OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.COMPLETED})

ORDER_RULES: dict[OrderAction, OrderRule] = {
    OrderAction.MARK_PAID: OrderRule(
        None, frozenset({OrderStatus.PENDING_PAYMENT}), OrderStatus.PAID,
    ),
    OrderAction.SHIP: OrderRule(
        PartyRole.SELLER, frozenset({OrderStatus.PAID}), OrderStatus.SHIPPED,
    ),
    OrderAction.COMPLETE: OrderRule(
        PartyRole.SELLER, frozenset({OrderStatus.SHIPPED}), OrderStatus.COMPLETED,
    ),
    OrderAction.CANCEL: OrderRule(
        None, CANCELLABLE_STATUSES, OrderStatus.CANCELLED,
    ),
}


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def check_order_seller(order: OrderLike, actor: UserId) -> None:
    if actor != order.seller_id:
        raise AuthorizationError(
            "Only the seller can update this order",
            ErrorContext(order_id=str(order.id), user_id=str(actor)),
        )


def check_cancel_actor(order: OrderLike, actor: UserId) -> None:
    """Either party before payment; seller only once money has moved."""
    if actor == order.seller_id:
        return
    if actor == order.buyer_id:
        if OrderStatus(order.status) is OrderStatus.PENDING_PAYMENT:
            return
        raise AuthorizationError(
            "Only the seller can cancel an order after payment",
            ErrorContext(order_id=str(order.id), user_id=str(actor)),
        )
    raise AuthorizationError(
        "Only the buyer or seller can cancel this order",
        ErrorContext(order_id=str(order.id), user_id=str(actor)),
    )


def check_order_state(rule: OrderRule, order: OrderLike) -> None:
    current = OrderStatus(order.status)
    if current not in rule.sources:
        allowed = ", ".join(sorted(s.value for s in rule.sources))
        raise StateError(
            f"Order is {current.value}; expected one of: {allowed}",
            current_status=current.value,
            context=ErrorContext(order_id=str(order.id)),
        )


def plan_order_transition(
    action: OrderAction,
    order: OrderLike,
    actor: UserId | None,
    tracking_number: str | None = None,
    notes: str | None = None,
) -> dict:
    """Validate an order mutation and return the column values to write."""
    rule = ORDER_RULES[action]
    if action is OrderAction.CANCEL:
        check_cancel_actor(order, actor)
    elif rule.actor is PartyRole.SELLER:
        check_order_seller(order, actor)
    check_order_state(rule, order)

    plan: dict = {"status": rule.target.value}
    if action is OrderAction.SHIP:
        plan["tracking_number"] = _blank_to_none(tracking_number)
        plan["notes"] = _blank_to_none(notes)
    elif action is OrderAction.CANCEL and notes is not None:
        plan["notes"] = _blank_to_none(notes)
    return plan
