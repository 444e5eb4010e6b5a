"""Checkout Terms — pure construction of what is sent to the payment processor.

Invariants:
    - Metadata carries the quoted fees verbatim (strings, processor metadata is text-only)
    - success_url embeds the processor's {CHECKOUT_SESSION_ID} placeholder untouched
    - Pro status requires an active subscription AND the pro tier

Design Decisions:
    - Origin comes from the calling page when present so redirects land on the
      same frontend deployment that started checkout
"""

from vinyl_exchange.core.compute_fees import FeeBreakdown
from vinyl_exchange.core.domain_types import SubscriptionTier

SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def is_pro_member(subscribed: bool | None, tier: str | None) -> bool:
    return bool(subscribed) and (tier or "").lower() == SubscriptionTier.PRO.value


def build_line_item(album_name: str, artist: str) -> str:
    return f"{album_name} by {artist}"


def build_description(seller_name: str | None) -> str:
    return f"Purchase from {seller_name or 'Seller'}"


def build_redirect_urls(origin: str) -> tuple[str, str]:
    """(success_url, cancel_url) for a checkout started from `origin`."""
    base = origin.rstrip("/")
    return (
        f"{base}/payment-success?session_id={SESSION_ID_PLACEHOLDER}",
        f"{base}/dashboard",
    )


def build_checkout_metadata(
    offer_id, buyer_id, seller_id, listing_id, fees: FeeBreakdown,
) -> dict[str, str]:
    return {
        "offer_id": str(offer_id),
        "buyer_id": str(buyer_id),
        "seller_id": str(seller_id),
        "listing_id": str(listing_id),
        "offer_amount": str(fees.amount),
        "buyer_fee": str(fees.buyer_fee),
        "seller_fee": str(fees.seller_fee),
    }
