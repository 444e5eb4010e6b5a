"""Payment Settlement — checkout, verification, idempotency and recovery paths.

Invariants exercised:
    - Order fees are copied from compute_fees at checkout (4% default, pro buyer pays none)
    - Processor failure leaves no Order row
    - verify_payment moves order -> paid, offer -> completed, listing -> sold exactly once
    - A repeated checkout reuses the pending order (open session) or replaces an expired session
    - Lost Order rows are rebuilt from session metadata
    - One open order per record: concurrent checkouts resume the winner, rival buyers wait
    - A payment for a record sold elsewhere cancels its order for refund
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import delete, func, select, update

from vinyl_exchange.core.domain_types import ListingStatus, OfferStatus, OrderStatus
from vinyl_exchange.core.errors import (
    AuthorizationError, NotFoundError, PaymentError, StateError,
)
from vinyl_exchange.models.listing import Listing
from vinyl_exchange.models.order import Order
from vinyl_exchange.models.profile import Profile
from vinyl_exchange.services import order_lifecycle
from vinyl_exchange.services.conditional_update import reload
from vinyl_exchange.services.payment_settlement import REFUND_NOTE, PaymentSettlement

from tests.services.concurrency import run_before_next_write
from tests.services.fake_processor import FEE_RATE, ORIGIN


async def _order_count(db) -> int:
    return await db.scalar(select(func.count()).select_from(Order))


async def _only_order(db) -> Order:
    result = await db.execute(select(Order).execution_options(populate_existing=True))
    return result.scalar_one()


# ─── Checkout ───────────────────────────────────────────────────

async def test_checkout_creates_pending_order_with_fees(settlement, processor, accepted_offer, buyer_id, test_db):
    url = await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)

    created = processor.created[-1]
    assert url == f"https://checkout.test/{created['id']}"
    assert created["amount"] == Decimal("104.00")
    assert created["line_item"] == "Kind of Blue by Miles Davis"
    assert created["description"] == "Purchase from Sam Seller"
    assert created["success_url"] == f"{ORIGIN}/payment-success?session_id={{CHECKOUT_SESSION_ID}}"
    assert created["cancel_url"] == f"{ORIGIN}/dashboard"
    assert created["metadata"]["offer_id"] == str(accepted_offer.id)
    assert created["metadata"]["buyer_fee"] == "4.00"

    order = await _only_order(test_db)
    assert order.status == OrderStatus.PENDING_PAYMENT.value
    assert order.offer_amount == Decimal("100.00")
    assert order.buyer_fee == Decimal("4.00")
    assert order.seller_fee == Decimal("4.00")
    assert order.total_amount == Decimal("104.00")
    assert order.payment_session_id == created["id"]


async def test_checkout_for_counter_uses_counter_amount(settlement, processor, offers, listing, buyer_id, seller_id, test_db):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("50.00"))
    await offers.respond_counter(offer.id, seller_id, Decimal("80.00"))
    await offers.accept_counter(offer.id, buyer_id)

    await settlement.initiate_checkout(offer.id, buyer_id, ORIGIN)

    order = await _only_order(test_db)
    assert order.offer_amount == Decimal("80.00")
    assert order.buyer_fee == Decimal("3.20")
    assert order.total_amount == Decimal("83.20")
    assert processor.created[-1]["amount"] == Decimal("83.20")


async def test_pro_buyer_pays_no_buyer_fee(settlement, processor, accepted_offer, buyer_id, test_db):
    test_db.add(Profile(user_id=buyer_id, subscribed=True, subscription_tier="pro"))
    await test_db.commit()

    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)

    order = await _only_order(test_db)
    assert order.buyer_fee == Decimal("0.00")
    assert order.seller_fee == Decimal("4.00")
    assert order.total_amount == Decimal("100.00")


async def test_processor_timeout_leaves_no_order(settlement, processor, accepted_offer, buyer_id, test_db):
    processor.fail_with = PaymentError("Checkout timed out", "timeout", retry_after_ms=2000)

    with pytest.raises(PaymentError) as exc_info:
        await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)

    assert exc_info.value.processor_error_type == "timeout"
    assert await _order_count(test_db) == 0
    offer = await settlement.offers.load(accepted_offer.id)
    assert offer.status == OfferStatus.ACCEPTED.value


async def test_only_buyer_can_checkout(settlement, accepted_offer, seller_id, test_db):
    with pytest.raises(AuthorizationError):
        await settlement.initiate_checkout(accepted_offer.id, seller_id, ORIGIN)
    assert await _order_count(test_db) == 0


async def test_pending_offer_cannot_be_paid(settlement, offers, listing, buyer_id, processor):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("100.00"))
    with pytest.raises(StateError):
        await settlement.initiate_checkout(offer.id, buyer_id, ORIGIN)
    assert processor.created == []


async def test_denied_offer_cannot_be_paid(settlement, offers, listing, buyer_id, seller_id):
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("100.00"))
    await offers.respond_deny(offer.id, seller_id)
    with pytest.raises(StateError):
        await settlement.initiate_checkout(offer.id, buyer_id, ORIGIN)


async def test_missing_offer_not_found(settlement, buyer_id):
    with pytest.raises(NotFoundError):
        await settlement.initiate_checkout(uuid4(), buyer_id, ORIGIN)


async def test_repeat_checkout_reuses_open_session(settlement, processor, accepted_offer, buyer_id, test_db):
    first = await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    second = await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)

    assert first == second
    assert len(processor.created) == 1
    assert await _order_count(test_db) == 1


async def test_repeat_checkout_replaces_expired_session(settlement, processor, accepted_offer, buyer_id, test_db):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    old_session = processor.created[-1]["id"]
    processor.expire(old_session)

    url = await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)

    new_session = processor.created[-1]["id"]
    assert new_session != old_session
    assert url == f"https://checkout.test/{new_session}"
    assert processor.created[-1]["amount"] == Decimal("104.00")
    order = await _only_order(test_db)
    assert order.payment_session_id == new_session


async def test_repeat_checkout_after_payment_settles_instead(settlement, processor, accepted_offer, buyer_id, test_db):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    processor.pay(processor.created[-1]["id"])

    with pytest.raises(StateError):
        await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)

    order = await _only_order(test_db)
    assert order.status == OrderStatus.PAID.value


async def test_sold_listing_refuses_second_checkout(settlement, processor, offers, accepted_offer, listing, buyer_id, seller_id, stranger_id):
    rival = await offers.create_offer(listing.id, stranger_id, Decimal("110.00"))
    await offers.respond_accept(rival.id, seller_id)

    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    processor.pay(session_id)
    await settlement.verify_payment(session_id)

    with pytest.raises(StateError):
        await settlement.initiate_checkout(rival.id, stranger_id, ORIGIN)


async def test_rival_checkout_refused_while_order_pending(settlement, processor, offers, accepted_offer, listing, buyer_id, seller_id, stranger_id, test_db):
    rival = await offers.create_offer(listing.id, stranger_id, Decimal("110.00"))
    await offers.respond_accept(rival.id, seller_id)
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)

    with pytest.raises(StateError):
        await settlement.initiate_checkout(rival.id, stranger_id, ORIGIN)

    assert len(processor.created) == 1
    order = await _only_order(test_db)
    assert order.buyer_id == buyer_id


async def test_concurrent_checkout_resumes_winning_order(processor, feed, accepted_offer, buyer_id, test_session_factory, test_db):
    offer_id = accepted_offer.id
    competitor_urls = []

    async with test_session_factory() as first_db, test_session_factory() as second_db:
        first = PaymentSettlement(first_db, processor, feed, FEE_RATE)
        second = PaymentSettlement(second_db, processor, feed, FEE_RATE)

        async def checkout_elsewhere():
            competitor_urls.append(await second.initiate_checkout(offer_id, buyer_id, ORIGIN))

        processor.on_create = checkout_elsewhere
        url = await first.initiate_checkout(offer_id, buyer_id, ORIGIN)

    assert competitor_urls == ["https://checkout.test/cs_test_1"]
    assert url == competitor_urls[0]
    assert [c["id"] for c in processor.created] == ["cs_test_1", "cs_test_2"]
    order = await _only_order(test_db)
    assert order.payment_session_id == "cs_test_1"
    assert order.status == OrderStatus.PENDING_PAYMENT.value
    assert feed.tables().count("orders") == 1


# ─── Verification ───────────────────────────────────────────────

async def test_verify_settles_order_offer_and_listing(settlement, processor, accepted_offer, listing, buyer_id, test_db, feed):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    processor.pay(session_id, shipping_address="Jane Doe, 1 Main St, Springfield, US")
    feed.events.clear()

    result = await settlement.verify_payment(session_id)

    assert result == {"success": True, "status": "paid", "order_status": "paid"}
    order = await _only_order(test_db)
    assert order.status == OrderStatus.PAID.value
    assert order.payment_intent_id == f"pi_{session_id}"
    assert order.shipping_address == "Jane Doe, 1 Main St, Springfield, US"
    offer = await settlement.offers.load(accepted_offer.id)
    assert offer.status == OfferStatus.COMPLETED.value
    sold = await reload(test_db, Listing, listing.id)
    assert sold.status == ListingStatus.SOLD.value
    assert sorted(feed.tables()) == ["offers", "orders", "vinyl_records"]


async def test_verify_is_idempotent(settlement, processor, accepted_offer, buyer_id, test_db, feed):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    processor.pay(session_id)
    await settlement.verify_payment(session_id)
    published = len(feed.events)

    again = await settlement.verify_payment(session_id)

    assert again["success"] is True
    assert again["order_status"] == OrderStatus.PAID.value
    assert len(feed.events) == published
    assert await _order_count(test_db) == 1


async def test_verify_unpaid_session_changes_nothing(settlement, processor, accepted_offer, buyer_id, test_db):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]

    result = await settlement.verify_payment(session_id)

    assert result["success"] is False
    assert result["status"] == "unpaid"
    assert result["order_status"] == OrderStatus.PENDING_PAYMENT.value
    order = await _only_order(test_db)
    assert order.status == OrderStatus.PENDING_PAYMENT.value


async def test_verify_unknown_session_not_found(settlement):
    with pytest.raises(NotFoundError):
        await settlement.verify_payment("cs_test_missing")


async def test_verify_after_shipment_reports_settled(settlement, processor, paid_order, orders, seller_id):
    await orders.mark_shipped(paid_order.id, seller_id, tracking_number="1Z999")
    result = await settlement.verify_payment(paid_order.payment_session_id)
    assert result["success"] is True
    assert result["order_status"] == OrderStatus.SHIPPED.value


async def test_verify_cancelled_order_raises(settlement, processor, orders, accepted_offer, buyer_id):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    order = (await orders.list_orders(buyer_id))[0]
    await orders.cancel_order(order.id, buyer_id)
    processor.pay(session_id)

    with pytest.raises(StateError):
        await settlement.verify_payment(session_id)


async def test_verify_rebuilds_lost_order_from_metadata(settlement, processor, accepted_offer, buyer_id, test_db):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    await test_db.execute(delete(Order))
    await test_db.commit()
    processor.pay(session_id)

    result = await settlement.verify_payment(session_id)

    assert result["success"] is True
    order = await _only_order(test_db)
    assert order.status == OrderStatus.PAID.value
    assert order.offer_id == accepted_offer.id
    assert order.buyer_fee == Decimal("4.00")
    assert order.total_amount == Decimal("104.00")
    assert order.payment_session_id == session_id


async def test_verify_loses_to_concurrent_verify(monkeypatch, settlement, processor, feed, accepted_offer, buyer_id, test_session_factory, test_db):
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    processor.pay(session_id)
    feed.events.clear()

    async def verify_elsewhere():
        async with test_session_factory() as other_db:
            await PaymentSettlement(other_db, processor, feed, FEE_RATE).verify_payment(session_id)

    run_before_next_write(monkeypatch, order_lifecycle, verify_elsewhere)

    result = await settlement.verify_payment(session_id)

    assert result == {"success": True, "status": "paid", "order_status": "paid"}
    assert await _order_count(test_db) == 1
    order = await _only_order(test_db)
    assert order.status == OrderStatus.PAID.value
    assert sorted(feed.tables()) == ["offers", "orders", "vinyl_records"]


async def test_payment_for_record_sold_elsewhere_cancels_for_refund(settlement, processor, feed, accepted_offer, listing, buyer_id, test_db):
    offer_id, listing_id = accepted_offer.id, listing.id
    await settlement.initiate_checkout(offer_id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    await test_db.execute(
        update(Listing).where(Listing.id == listing_id).values(status=ListingStatus.SOLD.value),
    )
    await test_db.commit()
    processor.pay(session_id)
    feed.events.clear()

    result = await settlement.verify_payment(session_id)

    assert result == {"success": False, "status": "paid", "order_status": "cancelled"}
    order = await _only_order(test_db)
    assert order.status == OrderStatus.CANCELLED.value
    assert order.notes == REFUND_NOTE
    assert order.payment_intent_id == f"pi_{session_id}"
    offer = await settlement.offers.load(offer_id)
    assert offer.status == OfferStatus.ACCEPTED.value
    assert feed.tables() == ["orders"]

    again = await settlement.verify_payment(session_id)
    assert again["success"] is False
    assert again["order_status"] == OrderStatus.CANCELLED.value
    assert feed.tables() == ["orders"]


async def test_lost_order_not_rebuilt_when_record_taken(settlement, processor, offers, accepted_offer, listing, buyer_id, seller_id, stranger_id, test_db):
    rival = await offers.create_offer(listing.id, stranger_id, Decimal("110.00"))
    await offers.respond_accept(rival.id, seller_id)
    rival_id = rival.id
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    lost_session = processor.created[-1]["id"]
    await test_db.execute(delete(Order))
    await test_db.commit()
    await settlement.initiate_checkout(rival_id, stranger_id, ORIGIN)
    processor.pay(lost_session)

    with pytest.raises(StateError):
        await settlement.verify_payment(lost_session)

    order = await _only_order(test_db)
    assert order.offer_id == rival_id
    assert order.status == OrderStatus.PENDING_PAYMENT.value
