"""Payment Settlement — turns an accepted offer into a paid order via the payment processor.

Invariants:
    - Processor failure or timeout before the Order insert leaves no Order row (PaymentError)
    - The Order insert and a compare-and-set confirming offer.status == 'accepted'
      commit together: a checkout can never outlive a concurrent denial
    - Order fees are copied verbatim from compute_fees at checkout time
    - verify_payment is idempotent: the first application moves Order -> paid,
      Offer -> completed, Listing -> sold and publishes events; repeats write nothing
    - One non-cancelled Order per listing (uq_orders_open_listing): a repeated checkout
      reuses it, a concurrent one resumes the winner's session
    - A payment that lands after the record was sold elsewhere cancels its order with a
      refund note and reports success=False; the order is never marked paid

Design Decisions:
    - A failure to record the Order after the session opened raises PaymentError carrying
      the session id; verify_payment can rebuild the Order from session metadata
    - Membership tiers read at checkout time; a missing profile counts as the free tier
    - Processor IO happens outside any open write: nothing is staged until the session exists
"""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vinyl_exchange.core.checkout_terms import (
    build_checkout_metadata, build_description, build_line_item,
    build_redirect_urls, is_pro_member,
)
from vinyl_exchange.core.compute_fees import FeeBreakdown, compute_fees, round_to_cents
from vinyl_exchange.core.domain_types import (
    ChangeAction, CheckoutSessionStatus, ListingStatus, OfferStatus, OrderStatus,
    PaymentStatus, UserId,
)
from vinyl_exchange.core.errors import (
    AuthorizationError, ErrorContext, NotFoundError, PaymentError, StateError,
)
from vinyl_exchange.core.listing_rules import check_listing_open_for_offers
from vinyl_exchange.core.order_transitions import SETTLED_STATUSES
from vinyl_exchange.core.repository_protocols import (
    ChangePublisher, CheckoutSession, PaymentProcessor,
)
from vinyl_exchange.models.listing import Listing
from vinyl_exchange.models.offer import Offer
from vinyl_exchange.models.order import Order
from vinyl_exchange.models.profile import Profile
from vinyl_exchange.services.change_feed import row_event
from vinyl_exchange.services.conditional_update import compare_and_set, reload, utcnow
from vinyl_exchange.services.offer_lifecycle import OfferLifecycle
from vinyl_exchange.services.order_lifecycle import OrderLifecycle

logger = logging.getLogger(__name__)

_PAID = {PaymentStatus.PAID.value, PaymentStatus.NO_PAYMENT_REQUIRED.value}
REFUND_NOTE = "Refund required: record was no longer available when payment completed"


class PaymentSettlement:
    """Checkout initiation and payment verification."""

    def __init__(
        self,
        db: AsyncSession,
        processor: PaymentProcessor,
        feed: ChangePublisher,
        fee_rate: Decimal,
    ):
        self.db = db
        self.processor = processor
        self.feed = feed
        self.fee_rate = fee_rate
        self.offers = OfferLifecycle(db, feed)
        self.orders = OrderLifecycle(db, feed)

    # ─── Checkout ───────────────────────────────────────────────

    async def initiate_checkout(
        self, offer_id: UUID, acting_buyer: UserId, origin: str,
    ) -> str:
        """Open (or resume) a checkout session for an accepted offer; returns its URL."""
        offer = await self.offers.load(offer_id)
        ctx = ErrorContext(offer_id=str(offer.id), user_id=str(acting_buyer))
        if acting_buyer != offer.buyer_id:
            raise AuthorizationError("Only the buyer can pay for this offer", ctx)
        if OfferStatus(offer.status) is not OfferStatus.ACCEPTED:
            raise StateError(
                f"Offer is {offer.status}; only accepted offers can be paid",
                current_status=offer.status, context=ctx,
            )

        pending = await self._pending_order_for(offer.id)
        if pending is not None:
            return await self._resume_checkout(pending, offer, origin)

        listing = await reload(self.db, Listing, offer.listing_id)
        listing_id = listing.id
        check_listing_open_for_offers(listing.id, listing.status)
        taken = await self._open_order_on_listing(listing.id)
        if taken is not None:
            raise StateError(
                "This record already has an order in progress",
                current_status=taken.status,
                context=ErrorContext(
                    offer_id=str(offer.id), listing_id=str(listing.id),
                    user_id=str(acting_buyer),
                ),
            )
        buyer_pro, seller_pro, seller_name = await self._membership(
            offer.buyer_id, offer.seller_id,
        )
        fees = compute_fees(offer.amount, buyer_pro, seller_pro, self.fee_rate)
        session = await self._open_session(offer, fees, seller_name, origin)

        order = Order(
            listing_id=listing.id,
            offer_id=offer.id,
            buyer_id=offer.buyer_id,
            seller_id=offer.seller_id,
            offer_amount=fees.amount,
            buyer_fee=fees.buyer_fee,
            seller_fee=fees.seller_fee,
            total_amount=fees.total,
            status=OrderStatus.PENDING_PAYMENT.value,
            payment_session_id=session.id,
        )
        try:
            still_accepted = await self.offers.stage_still_accepted(offer.id)
            if still_accepted:
                self.db.add(order)
                await self.db.commit()
        except IntegrityError:
            # Another checkout on this listing committed first
            await self.db.rollback()
            winner = await self._pending_order_for(offer_id)
            if winner is None:
                raise StateError(
                    "This record already has an order in progress",
                    context=ErrorContext(
                        offer_id=str(offer_id), listing_id=str(listing_id),
                        payment_session_id=session.id,
                    ),
                )
            logger.warning(
                "Concurrent checkout for offer; session abandoned",
                extra={
                    "offer_id": str(offer_id),
                    "order_id": str(winner.id),
                    "payment_session_id": session.id,
                },
            )
            return await self._resume_checkout(winner, await self.offers.load(offer_id), origin)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                f"Order insert failed after checkout session opened: {e}",
                extra={"offer_id": str(offer_id), "payment_session_id": session.id},
            )
            raise PaymentError(
                "Checkout opened but the order could not be recorded",
                "order_persist_failed",
                context=ErrorContext(offer_id=str(offer_id), payment_session_id=session.id),
            )
        if not still_accepted:
            await self.db.rollback()
            current = await self.offers.load(offer_id)
            logger.warning(
                "Offer left accepted during checkout; session abandoned",
                extra={"offer_id": str(offer_id), "payment_session_id": session.id},
            )
            raise StateError(
                f"Offer is {current.status}; only accepted offers can be paid",
                current_status=current.status, context=ctx,
            )

        logger.info(
            "Order created for checkout",
            extra={"order_id": str(order.id), "payment_session_id": session.id},
        )
        self.orders.publish(order, ChangeAction.INSERT)
        return session.url

    async def _resume_checkout(self, order: Order, offer: Offer, origin: str) -> str:
        """Reuse the pending order's session, or replace it if it expired."""
        order_id, offer_id = order.id, offer.id
        if order.payment_session_id:
            session = await self.processor.retrieve_session(order.payment_session_id)
            if session.payment_status in _PAID:
                await self.verify_payment(session.id)
                raise StateError(
                    "This offer has already been paid for",
                    current_status=OrderStatus.PAID.value,
                    context=ErrorContext(order_id=str(order_id), offer_id=str(offer_id)),
                )
            if session.status == CheckoutSessionStatus.OPEN.value and session.url:
                return session.url

        _, _, seller_name = await self._membership(offer.buyer_id, offer.seller_id)
        fees = FeeBreakdown(
            amount=order.offer_amount,
            buyer_fee=order.buyer_fee,
            seller_fee=order.seller_fee,
            total=order.total_amount,
            seller_payout=round_to_cents(order.offer_amount - order.seller_fee),
        )
        session = await self._open_session(offer, fees, seller_name, origin)
        replaced = await compare_and_set(
            self.db, Order, order.id,
            guard={
                "status": OrderStatus.PENDING_PAYMENT,
                "payment_session_id": order.payment_session_id,
            },
            values={"payment_session_id": session.id},
        )
        if not replaced:
            await self.db.rollback()
            raise StateError(
                "Order changed during checkout; reload and retry",
                context=ErrorContext(order_id=str(order_id), payment_session_id=session.id),
            )
        await self.db.commit()
        logger.info(
            "Expired checkout session replaced",
            extra={"order_id": str(order_id), "payment_session_id": session.id},
        )
        return session.url

    async def _open_session(
        self, offer: Offer, fees: FeeBreakdown, seller_name: str | None, origin: str,
    ) -> CheckoutSession:
        success_url, cancel_url = build_redirect_urls(origin)
        return await self.processor.create_checkout_session(
            amount=fees.total,
            line_item=build_line_item(offer.listing.album_name, offer.listing.artist),
            description=build_description(seller_name),
            metadata=build_checkout_metadata(
                offer.id, offer.buyer_id, offer.seller_id, offer.listing_id, fees,
            ),
            success_url=success_url,
            cancel_url=cancel_url,
        )

    # ─── Verification ───────────────────────────────────────────

    async def verify_payment(self, session_id: str) -> dict:
        """Apply a paid session to its order, offer and listing. Safe to call repeatedly."""
        session = await self.processor.retrieve_session(session_id)
        order = await self._order_for_session(session_id)

        if session.payment_status not in _PAID:
            return {
                "success": False,
                "status": session.payment_status,
                "order_status": order.status if order else None,
            }

        if order is None:
            order = await self._recover_order(session)
        order_id = order.id

        if OrderStatus(order.status) in SETTLED_STATUSES:
            return {"success": True, "status": session.payment_status, "order_status": order.status}
        if OrderStatus(order.status) is OrderStatus.CANCELLED:
            if order.notes == REFUND_NOTE:
                return {"success": False, "status": session.payment_status, "order_status": order.status}
            logger.error(
                "Payment received for a cancelled order",
                extra={"order_id": str(order.id), "payment_session_id": session_id},
            )
            raise StateError(
                "Order was cancelled before payment completed",
                current_status=order.status,
                context=ErrorContext(order_id=str(order.id), payment_session_id=session_id),
            )

        applied = await self.orders.stage_paid(
            order, session.payment_intent, session.shipping_address,
        )
        if not applied:
            # Another verification got there first
            await self.db.rollback()
            current = await self.orders.load(order_id)
            return {
                "success": OrderStatus(current.status) in SETTLED_STATUSES,
                "status": session.payment_status,
                "order_status": current.status,
            }

        offer_completed = await self.offers.stage_completion(order.offer_id)
        if not offer_completed:
            logger.warning(
                "Offer was not in accepted state at payment time",
                extra={"offer_id": str(order.offer_id), "order_id": str(order.id)},
            )
        sold = await self.db.execute(
            update(Listing)
            .where(Listing.id == order.listing_id)
            .where(Listing.status == ListingStatus.ACTIVE.value)
            .values(status=ListingStatus.SOLD.value, updated_at=utcnow())
            .execution_options(synchronize_session=False),
        )
        if sold.rowcount != 1:
            await self.db.rollback()
            return await self._cancel_for_refund(order_id, session)
        await self.db.commit()

        logger.info(
            "Payment verified",
            extra={"order_id": str(order.id), "payment_session_id": session_id},
        )
        self.orders.publish(order, ChangeAction.UPDATE)
        if offer_completed:
            self.feed.publish(row_event(
                "offers", order.offer_id, ChangeAction.UPDATE,
                buyer_id=order.buyer_id, seller_id=order.seller_id,
            ))
        self.feed.publish(row_event(
            "vinyl_records", order.listing_id, ChangeAction.UPDATE, seller_id=order.seller_id,
        ))
        return {"success": True, "status": session.payment_status, "order_status": OrderStatus.PAID.value}

    async def _cancel_for_refund(self, order_id: UUID, session: CheckoutSession) -> dict:
        """Paid, but the record is gone: cancel the order and flag it for a refund."""
        cancelled = await compare_and_set(
            self.db, Order, order_id,
            guard={"status": OrderStatus.PENDING_PAYMENT},
            values={
                "status": OrderStatus.CANCELLED.value,
                "payment_intent_id": session.payment_intent,
                "notes": REFUND_NOTE,
            },
        )
        if cancelled:
            await self.db.commit()
        else:
            await self.db.rollback()
        current = await self.orders.load(order_id)
        if cancelled:
            logger.error(
                "Payment received for a record that is no longer available; refund required",
                extra={
                    "order_id": str(order_id),
                    "listing_id": str(current.listing_id),
                    "payment_session_id": session.id,
                },
            )
            self.orders.publish(current, ChangeAction.UPDATE)
        return {
            "success": OrderStatus(current.status) in SETTLED_STATUSES,
            "status": session.payment_status,
            "order_status": current.status,
        }

    async def _recover_order(self, session: CheckoutSession) -> Order:
        """Rebuild a pending Order from session metadata when checkout failed to record it."""
        meta = session.metadata
        offer_id = meta.get("offer_id")
        if not offer_id or "buyer_fee" not in meta:
            raise NotFoundError("Order", session.id, ErrorContext(payment_session_id=session.id))
        offer = await self.offers.load(UUID(offer_id))
        if OfferStatus(offer.status) is not OfferStatus.ACCEPTED:
            raise StateError(
                f"Offer is {offer.status}; cannot settle session",
                current_status=offer.status,
                context=ErrorContext(offer_id=offer_id, payment_session_id=session.id),
            )
        ctx = ErrorContext(
            offer_id=offer_id, listing_id=str(offer.listing_id), payment_session_id=session.id,
        )
        if (
            offer.listing.status != ListingStatus.ACTIVE.value
            or await self._open_order_on_listing(offer.listing_id) is not None
        ):
            raise self._unrecoverable(ctx)
        amount = Decimal(meta["offer_amount"])
        buyer_fee = Decimal(meta["buyer_fee"])
        order = Order(
            listing_id=offer.listing_id,
            offer_id=offer.id,
            buyer_id=offer.buyer_id,
            seller_id=offer.seller_id,
            offer_amount=amount,
            buyer_fee=buyer_fee,
            seller_fee=Decimal(meta["seller_fee"]),
            total_amount=round_to_cents(amount + buyer_fee),
            status=OrderStatus.PENDING_PAYMENT.value,
            payment_session_id=session.id,
        )
        self.db.add(order)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise self._unrecoverable(ctx)
        logger.warning(
            "Order recovered from checkout session metadata",
            extra={"order_id": str(order.id), "payment_session_id": session.id},
        )
        return order

    def _unrecoverable(self, ctx: ErrorContext) -> StateError:
        logger.error(
            "Paid session has no order and the record is no longer available; refund required",
            extra={"listing_id": ctx.listing_id, "payment_session_id": ctx.payment_session_id},
        )
        return StateError("This record is no longer available; payment needs a refund", context=ctx)

    # ─── Lookups ────────────────────────────────────────────────

    async def _pending_order_for(self, offer_id: UUID) -> Order | None:
        result = await self.db.execute(
            select(Order)
            .where(Order.offer_id == offer_id)
            .where(Order.status == OrderStatus.PENDING_PAYMENT.value)
            .execution_options(populate_existing=True),
        )
        return result.scalars().first()

    async def _open_order_on_listing(self, listing_id: UUID) -> Order | None:
        result = await self.db.execute(
            select(Order)
            .where(Order.listing_id == listing_id)
            .where(Order.status != OrderStatus.CANCELLED.value)
            .execution_options(populate_existing=True),
        )
        return result.scalars().first()

    async def _order_for_session(self, session_id: str) -> Order | None:
        result = await self.db.execute(
            select(Order)
            .where(Order.payment_session_id == session_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one_or_none()

    async def _membership(
        self, buyer_id: UUID, seller_id: UUID,
    ) -> tuple[bool, bool, str | None]:
        """(buyer_is_pro, seller_is_pro, seller display name)."""
        result = await self.db.execute(
            select(Profile).where(Profile.user_id.in_([buyer_id, seller_id])),
        )
        profiles = {p.user_id: p for p in result.scalars().all()}
        buyer = profiles.get(buyer_id)
        seller = profiles.get(seller_id)
        return (
            is_pro_member(buyer.subscribed, buyer.subscription_tier) if buyer else False,
            is_pro_member(seller.subscribed, seller.subscription_tier) if seller else False,
            (seller.full_name or seller.username) if seller else None,
        )
