"""Service test fixtures — async DB, fake processor, seeded marketplace, FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - Payment processor and change feed overridden with in-memory fakes
    - Service fixtures share the test_db session so assertions see their writes

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for lifecycle tests
      (PostgreSQL-specific features are not exercised here)
    - db_manager patched: the readiness route uses db_manager.health_check() directly
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from vinyl_exchange.api.dependencies import get_payment_processor
from vinyl_exchange.db.base import Base
from vinyl_exchange.infrastructure.database import get_db, DatabaseSessionManager
from vinyl_exchange.models.listing import Listing
from vinyl_exchange.models.profile import Profile
from vinyl_exchange.services.change_feed import get_change_feed
from vinyl_exchange.services.listing_catalog import ListingCatalog
from vinyl_exchange.services.offer_lifecycle import OfferLifecycle
from vinyl_exchange.services.order_lifecycle import OrderLifecycle
from vinyl_exchange.services.payment_settlement import PaymentSettlement
from vinyl_exchange.services.review_ledger import ReviewLedger
import vinyl_exchange.infrastructure.database as db_module
from vinyl_exchange.main import app

from tests.services.fake_processor import (
    FEE_RATE, ORIGIN, FakePaymentProcessor, RecordingFeed,
)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


# ─── Fakes ──────────────────────────────────────────────────────

@pytest.fixture
def processor():
    return FakePaymentProcessor()


@pytest.fixture
def feed():
    return RecordingFeed()


# ─── Parties & seed data ────────────────────────────────────────

@pytest.fixture
def seller_id():
    return uuid4()


@pytest.fixture
def buyer_id():
    return uuid4()


@pytest.fixture
def stranger_id():
    return uuid4()


@pytest.fixture
async def seller_profile(test_db, seller_id):
    profile = Profile(user_id=seller_id, username="crate_digger", full_name="Sam Seller")
    test_db.add(profile)
    await test_db.commit()
    return profile


@pytest.fixture
async def listing(test_db, seller_id, seller_profile):
    record = Listing(
        seller_id=seller_id,
        album_name="Kind of Blue",
        artist="Miles Davis",
        price=Decimal("120.00"),
        condition="VG+",
        images=["https://img.test/front.jpg", "https://img.test/back.jpg"],
        genre="Jazz",
        release_year=1959,
    )
    test_db.add(record)
    await test_db.commit()
    return record


# ─── Services ───────────────────────────────────────────────────

@pytest.fixture
def catalog(test_db, feed):
    return ListingCatalog(test_db, feed)


@pytest.fixture
def offers(test_db, feed):
    return OfferLifecycle(test_db, feed)


@pytest.fixture
def orders(test_db, feed):
    return OrderLifecycle(test_db, feed)


@pytest.fixture
def settlement(test_db, processor, feed):
    return PaymentSettlement(test_db, processor, feed, FEE_RATE)


@pytest.fixture
def ledger(test_db, feed):
    return ReviewLedger(test_db, feed)


@pytest.fixture
async def accepted_offer(offers, listing, buyer_id, seller_id):
    """A 100.00 offer the seller has accepted."""
    offer = await offers.create_offer(listing.id, buyer_id, Decimal("100.00"))
    return await offers.respond_accept(offer.id, seller_id)


@pytest.fixture
async def paid_order(settlement, processor, orders, accepted_offer, buyer_id):
    """Checkout + verified payment for accepted_offer."""
    await settlement.initiate_checkout(accepted_offer.id, buyer_id, ORIGIN)
    session_id = processor.created[-1]["id"]
    processor.pay(session_id)
    await settlement.verify_payment(session_id)
    found = await orders.list_orders(buyer_id)
    return found[0]


@pytest.fixture
async def completed_order(orders, paid_order, seller_id):
    await orders.mark_shipped(paid_order.id, seller_id, tracking_number="1Z999")
    return await orders.mark_completed(paid_order.id, seller_id)


# ─── HTTP ───────────────────────────────────────────────────────

@pytest.fixture
def auth():
    """Authorization header for a user id."""
    def _headers(user_id) -> dict:
        return {"Authorization": f"Bearer {user_id}"}
    return _headers


@pytest.fixture
async def client(test_engine, test_session_factory, processor, feed):
    """FastAPI test client with DB, processor and change feed overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_processor] = lambda: processor
    app.dependency_overrides[get_change_feed] = lambda: feed

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
