"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - External collaborators (payment processor, change feed) accessed through Protocol types
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE the *Like protocols are never async themselves —
      the shell orchestrates the async calls around the pure logic
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Protocol
from uuid import UUID


class OfferLike(Protocol):
    """Structural contract for Offer rows passed to transition guards."""
    id: UUID
    buyer_id: UUID
    seller_id: UUID
    amount: Decimal
    counter_amount: Decimal | None
    status: str


class OrderLike(Protocol):
    """Structural contract for Order rows passed to transition guards."""
    id: UUID
    buyer_id: UUID
    seller_id: UUID
    status: str


# ─── Payment processor ──────────────────────────────────────────

@dataclass(frozen=True)
class CheckoutSession:
    """Processor-side checkout session, normalized away from SDK objects."""
    id: str
    url: str | None
    status: str | None = None
    payment_status: str | None = None
    payment_intent: str | None = None
    shipping_address: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class PaymentProcessor(Protocol):
    """Contract for the external payment processor — implemented by infrastructure."""
    async def create_checkout_session(
        self,
        *,
        amount: Decimal,
        line_item: str,
        description: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession: ...

    async def retrieve_session(self, session_id: str) -> CheckoutSession: ...


# ─── Change feed ────────────────────────────────────────────────

@dataclass(frozen=True)
class ChangeEvent:
    """Advisory "row changed" notification. Consumers re-read the row."""
    table: str
    row_id: UUID
    action: str
    owners: dict[str, UUID] = field(default_factory=dict)
    occurred_at: datetime | None = None

    def matches(self, table: str, row_filter: dict[str, UUID]) -> bool:
        if table != self.table:
            return False
        return all(self.owners.get(k) == v for k, v in row_filter.items())

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "row_id": str(self.row_id),
            "action": self.action,
            "owners": {k: str(v) for k, v in self.owners.items()},
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }


ChangeCallback = Callable[[ChangeEvent], None]


class ChangePublisher(Protocol):
    """Contract for publishing change events — core publishes, never depends on delivery."""
    def publish(self, event: ChangeEvent) -> None: ...
