"""Order Lifecycle — fulfilment transitions after checkout.

Invariants:
    - pending_payment -> paid only via stage_paid(), called by payment verification
    - paid -> shipped -> completed by the seller; completion unlocks reviews
    - cancelled reachable from any non-terminal state (core/order_transitions.py decides who)
    - Reads scoped to buyer and seller; everyone else gets NotFoundError

Design Decisions:
    - Same plan + compare-and-set shape as OfferLifecycle
    - stage_* methods never commit: settlement owns the transaction boundary
"""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from vinyl_exchange.core.domain_types import (
    ChangeAction, OrderStatus, PartyRole, UserId,
)
from vinyl_exchange.core.errors import ErrorContext, NotFoundError, StateError
from vinyl_exchange.core.order_transitions import OrderAction, plan_order_transition
from vinyl_exchange.core.repository_protocols import ChangePublisher
from vinyl_exchange.models.order import Order
from vinyl_exchange.services.change_feed import row_event
from vinyl_exchange.services.conditional_update import compare_and_set, reload

logger = logging.getLogger(__name__)


class OrderLifecycle:
    """Order reads and seller/buyer fulfilment actions."""

    def __init__(self, db: AsyncSession, feed: ChangePublisher):
        self.db = db
        self.feed = feed

    async def load(self, order_id: UUID) -> Order:
        order = await reload(self.db, Order, order_id)
        if order is None:
            raise NotFoundError("Order", str(order_id), ErrorContext(order_id=str(order_id)))
        return order

    async def get_order(self, order_id: UUID, viewer: UserId) -> Order:
        order = await self.load(order_id)
        if viewer not in (order.buyer_id, order.seller_id):
            raise NotFoundError("Order", str(order_id))
        return order

    async def list_orders(
        self,
        viewer: UserId,
        role: PartyRole | None = None,
        status: OrderStatus | None = None,
    ) -> list[Order]:
        query = select(Order)
        if role is PartyRole.BUYER:
            query = query.where(Order.buyer_id == viewer)
        elif role is PartyRole.SELLER:
            query = query.where(Order.seller_id == viewer)
        else:
            query = query.where(or_(Order.buyer_id == viewer, Order.seller_id == viewer))
        if status is not None:
            query = query.where(Order.status == status.value)
        result = await self.db.execute(
            query.order_by(Order.created_at.desc())
            .execution_options(populate_existing=True),
        )
        return list(result.scalars().all())

    async def mark_shipped(
        self,
        order_id: UUID,
        acting_seller: UserId,
        tracking_number: str | None = None,
        notes: str | None = None,
    ) -> Order:
        return await self._transition(
            order_id, acting_seller, OrderAction.SHIP,
            tracking_number=tracking_number, notes=notes,
        )

    async def mark_completed(self, order_id: UUID, acting_seller: UserId) -> Order:
        return await self._transition(order_id, acting_seller, OrderAction.COMPLETE)

    async def cancel_order(
        self, order_id: UUID, actor: UserId, notes: str | None = None,
    ) -> Order:
        return await self._transition(order_id, actor, OrderAction.CANCEL, notes=notes)

    async def stage_paid(
        self,
        order: Order,
        payment_intent_id: str | None,
        shipping_address: str | None,
    ) -> bool:
        """pending_payment -> paid in the caller's transaction. False if already moved."""
        plan = plan_order_transition(OrderAction.MARK_PAID, order, None)
        plan["payment_intent_id"] = payment_intent_id
        if shipping_address:
            plan["shipping_address"] = shipping_address
        return await compare_and_set(
            self.db, Order, order.id,
            guard={"status": OrderStatus.PENDING_PAYMENT}, values=plan,
        )

    async def _transition(
        self, order_id: UUID, actor: UserId, action: OrderAction, **fields,
    ) -> Order:
        order = await self.load(order_id)
        plan = plan_order_transition(action, order, actor, **fields)
        applied = await compare_and_set(
            self.db, Order, order.id, guard={"status": order.status}, values=plan,
        )
        if not applied:
            await self.db.rollback()
            current = await self.load(order_id)
            plan_order_transition(action, current, actor, **fields)
            raise StateError(
                "Order changed while updating; reload and retry",
                current_status=current.status,
                context=ErrorContext(order_id=str(order_id)),
            )
        await self.db.commit()
        order = await self.load(order_id)
        logger.info(
            f"Order {action.value} -> {order.status}",
            extra={"order_id": str(order.id), "user_id": str(actor)},
        )
        self.publish(order, ChangeAction.UPDATE)
        return order

    def publish(self, order: Order, action: ChangeAction) -> None:
        self.feed.publish(row_event(
            "orders", order.id, action,
            buyer_id=order.buyer_id, seller_id=order.seller_id,
        ))
