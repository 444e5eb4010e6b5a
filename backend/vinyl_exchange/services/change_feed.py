"""Change Feed — in-process publish/subscribe of advisory "row changed" events.

Invariants:
    - publish() never raises: a failing subscriber is logged and skipped
    - Subscribers filter by table + owner columns (buyer_id / seller_id equality)
    - Events carry ids only; consumers re-read authoritative state from the store
    - Services publish AFTER commit so a subscriber never sees uncommitted state

Design Decisions:
    - Callbacks are synchronous: async consumers (SSE stream) enqueue into their own
      asyncio.Queue and drain it on their side
    - Module-level singleton via get_change_feed(): one feed per process, like db_manager
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import count
from typing import Callable
from uuid import UUID

from vinyl_exchange.core.domain_types import ChangeAction
from vinyl_exchange.core.repository_protocols import ChangeCallback, ChangeEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Subscription:
    id: int
    table: str
    row_filter: dict[str, UUID]
    callback: ChangeCallback


class ChangeFeed:
    """Fan-out of ChangeEvents to filtered subscribers."""

    def __init__(self):
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = count(1)

    def subscribe(
        self,
        table: str,
        row_filter: dict[str, UUID] | None,
        callback: ChangeCallback,
    ) -> Callable[[], None]:
        """Register callback; returns an idempotent unsubscribe function."""
        sub = _Subscription(next(self._ids), table, dict(row_filter or {}), callback)
        self._subscriptions[sub.id] = sub

        def unsubscribe() -> None:
            self._subscriptions.pop(sub.id, None)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        for sub in list(self._subscriptions.values()):
            if not event.matches(sub.table, sub.row_filter):
                continue
            try:
                sub.callback(event)
            except Exception as e:
                logger.error(
                    f"Change subscriber {sub.id} failed on {event.table}: {e}",
                    exc_info=True,
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """FastAPI dependency / accessor for the process-wide feed."""
    return _feed


def row_event(table: str, row_id: UUID, action: ChangeAction, **owners: UUID) -> ChangeEvent:
    """Build a ChangeEvent stamped now; owners are the filterable columns of the row."""
    return ChangeEvent(
        table=table,
        row_id=row_id,
        action=action.value,
        owners={k: v for k, v in owners.items() if v is not None},
        occurred_at=datetime.now(timezone.utc),
    )
