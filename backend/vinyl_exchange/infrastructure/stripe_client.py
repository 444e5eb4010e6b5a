"""Resilient Stripe Client — wraps the Stripe SDK with bounded timeouts and error mapping.

Invariants:
    - Every call is bounded: HTTP timeout on the SDK client AND an outer asyncio deadline
    - Transient network failures retried by the SDK (max_network_retries), never by callers
    - Every Stripe/timeout failure mapped to PaymentError (core/errors.py);
      an unknown session id maps to NotFoundError
    - Returns CheckoutSession (core/repository_protocols.py), never raw SDK objects

Design Decisions:
    - Blocking SDK calls run in a worker thread: keeps the event loop free without
      depending on the SDK's optional async HTTP backend
    - Outer deadline = HTTP timeout x (retries + 1) + slack: the SDK's own retries
      stay inside the bound the caller was promised
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable

import stripe

from vinyl_exchange.core.compute_fees import to_minor_units
from vinyl_exchange.core.errors import ErrorContext, NotFoundError, PaymentError
from vinyl_exchange.core.repository_protocols import CheckoutSession

logger = logging.getLogger(__name__)

_DEADLINE_SLACK_SECONDS = 2.0


def _format_shipping(session: Any) -> str | None:
    """Flatten Stripe shipping details into a single display string."""
    details = session.get("shipping_details")
    if not details:
        collected = session.get("collected_information") or {}
        details = collected.get("shipping_details")
    if not details or not details.get("address"):
        return None
    address = details["address"]
    parts = [
        details.get("name"),
        address.get("line1"),
        address.get("line2"),
        " ".join(p for p in (address.get("postal_code"), address.get("city")) if p),
        address.get("state"),
        address.get("country"),
    ]
    return ", ".join(p for p in parts if p)


def _payment_intent_id(session: Any) -> str | None:
    intent = session.get("payment_intent")
    if intent is None or isinstance(intent, str):
        return intent
    return intent.get("id")


def to_checkout_session(session: Any) -> CheckoutSession:
    """Normalize a Stripe Checkout Session object."""
    return CheckoutSession(
        id=session["id"],
        url=session.get("url"),
        status=session.get("status"),
        payment_status=session.get("payment_status"),
        payment_intent=_payment_intent_id(session),
        shipping_address=_format_shipping(session),
        metadata=dict(session.get("metadata") or {}),
    )


class ResilientStripeClient:
    """Wraps StripeClient with timeouts, retries, and error mapping."""

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 10.0,
        max_network_retries: int = 2,
        currency: str = "usd",
        shipping_countries: list[str] | None = None,
    ):
        self.client = stripe.StripeClient(
            api_key,
            max_network_retries=max_network_retries,
            http_client=stripe.RequestsClient(timeout=timeout_seconds),
        )
        self.currency = currency
        self.shipping_countries = shipping_countries or []
        self.deadline_seconds = (
            timeout_seconds * (max_network_retries + 1) + _DEADLINE_SLACK_SECONDS
        )

    async def create_checkout_session(
        self,
        *,
        amount: Decimal,
        line_item: str,
        description: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Open a one-item payment-mode Checkout Session for `amount`."""
        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": line_item,
                            "description": description,
                        },
                        "unit_amount": to_minor_units(amount),
                    },
                    "quantity": 1,
                },
            ],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if self.shipping_countries:
            params["shipping_address_collection"] = {
                "allowed_countries": self.shipping_countries,
            }
        context = ErrorContext(offer_id=metadata.get("offer_id"))
        try:
            session = await self._call(
                lambda: self.client.checkout.sessions.create(params=params),
                "create_checkout_session", context,
            )
        except stripe.InvalidRequestError as e:
            logger.error(f"Stripe rejected checkout parameters: {e}")
            raise PaymentError(str(e), "invalid_request", context=context)
        logger.info(
            "Checkout session created",
            extra={"payment_session_id": session["id"], "offer_id": metadata.get("offer_id")},
        )
        return to_checkout_session(session)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        """Fetch current status of a Checkout Session."""
        context = ErrorContext(payment_session_id=session_id)
        try:
            session = await self._call(
                lambda: self.client.checkout.sessions.retrieve(session_id),
                "retrieve_session", context,
            )
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing":
                raise NotFoundError("Checkout session", session_id, context)
            raise PaymentError(str(e), "invalid_request", context=context)
        return to_checkout_session(session)

    async def _call(self, fn: Callable[[], Any], operation: str, context: ErrorContext):
        """Run a blocking SDK call under the deadline, mapping failures to PaymentError.

        InvalidRequestError passes through so callers can tell "missing" from "broken".
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fn), timeout=self.deadline_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(f"Stripe {operation} exceeded {self.deadline_seconds}s deadline")
            raise PaymentError(
                f"{operation} timed out", "timeout", context=context,
            )
        except stripe.RateLimitError as e:
            logger.warning(f"Stripe rate limit on {operation}: {e}")
            raise PaymentError(
                "Rate limit exceeded", "rate_limit",
                retry_after_ms=1000, context=context,
            )
        except stripe.APIConnectionError as e:
            logger.error(f"Stripe connection error on {operation}: {e}")
            raise PaymentError(
                f"Connection error: {e}", "connection_error", context=context,
            )
        except stripe.AuthenticationError as e:
            logger.critical(f"Stripe rejected API key on {operation}: {e}")
            raise PaymentError(
                "Processor authentication failed", "authentication", context=context,
            )
        except stripe.InvalidRequestError:
            raise
        except stripe.StripeError as e:
            logger.error(f"Stripe error on {operation}: {e}", exc_info=True)
            raise PaymentError(str(e), "processor_error", context=context)
