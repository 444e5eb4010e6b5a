"""Route Dependencies — caller identity and shared collaborators.

Invariants:
    - Caller identity comes ONLY from `Authorization: Bearer <user uuid>`;
      token verification happens upstream at the gateway
    - Missing or malformed identity -> AuthenticationError (401)
    - One payment processor client per process

Design Decisions:
    - Collaborators resolved through Depends so tests swap them with
      app.dependency_overrides instead of patching modules
"""

import logging
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from vinyl_exchange.config import get_settings
from vinyl_exchange.core.domain_types import UserId
from vinyl_exchange.core.errors import AuthenticationError
from vinyl_exchange.core.repository_protocols import PaymentProcessor
from vinyl_exchange.infrastructure.database import get_db
from vinyl_exchange.infrastructure.stripe_client import ResilientStripeClient
from vinyl_exchange.services.change_feed import ChangeFeed, get_change_feed
from vinyl_exchange.services.listing_catalog import ListingCatalog
from vinyl_exchange.services.offer_lifecycle import OfferLifecycle
from vinyl_exchange.services.order_lifecycle import OrderLifecycle
from vinyl_exchange.services.payment_settlement import PaymentSettlement
from vinyl_exchange.services.review_ledger import ReviewLedger

logger = logging.getLogger(__name__)

_payment_processor: ResilientStripeClient | None = None


def get_current_user_id(authorization: str | None = Header(None)) -> UserId:
    """Resolve the caller from the bearer token."""
    if not authorization:
        raise AuthenticationError()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Bearer token required")
    try:
        return UserId(UUID(token.strip()))
    except ValueError:
        raise AuthenticationError("Malformed bearer token")


def get_payment_processor() -> PaymentProcessor:
    """Singleton Stripe client — reused across requests."""
    global _payment_processor
    if _payment_processor is None:
        settings = get_settings()
        _payment_processor = ResilientStripeClient(
            api_key=settings.stripe_secret_key,
            timeout_seconds=settings.stripe_timeout_seconds,
            max_network_retries=settings.stripe_max_network_retries,
            currency=settings.payment_currency,
            shipping_countries=settings.shipping_countries,
        )
    return _payment_processor


def get_origin(request: Request) -> str:
    """Frontend origin for checkout redirects; falls back to the configured site URL."""
    return request.headers.get("origin") or get_settings().site_url


# ─── Service factories ──────────────────────────────────────────

def get_listing_catalog(
    db: AsyncSession = Depends(get_db), feed: ChangeFeed = Depends(get_change_feed),
) -> ListingCatalog:
    return ListingCatalog(db, feed)


def get_offer_lifecycle(
    db: AsyncSession = Depends(get_db), feed: ChangeFeed = Depends(get_change_feed),
) -> OfferLifecycle:
    return OfferLifecycle(db, feed)


def get_order_lifecycle(
    db: AsyncSession = Depends(get_db), feed: ChangeFeed = Depends(get_change_feed),
) -> OrderLifecycle:
    return OrderLifecycle(db, feed)


def get_payment_settlement(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> PaymentSettlement:
    return PaymentSettlement(db, processor, feed, get_settings().fee_rate)


def get_review_ledger(
    db: AsyncSession = Depends(get_db), feed: ChangeFeed = Depends(get_change_feed),
) -> ReviewLedger:
    return ReviewLedger(db, feed)
