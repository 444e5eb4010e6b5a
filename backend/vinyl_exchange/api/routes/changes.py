"""Change Stream — SSE delivery of change-feed events scoped to the caller.

Invariants:
    - A caller only receives events for rows they own (buyer/seller/reviewee/reviewer columns)
    - Subscriptions are removed when the client disconnects
    - Events are advisory: clients re-fetch the row through the regular endpoints

Design Decisions:
    - Feed callbacks run synchronously inside publish(); they only enqueue, the
      generator drains the queue on the request's own task
    - Comment-line heartbeat keeps idle proxies from closing the stream
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from vinyl_exchange.api.dependencies import get_current_user_id
from vinyl_exchange.core.domain_types import UserId
from vinyl_exchange.services.change_feed import ChangeFeed, get_change_feed

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/changes", tags=["changes"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}

HEARTBEAT_SECONDS = 15.0

# Owner columns a caller may match on, per table
OWNER_COLUMNS: dict[str, tuple[str, ...]] = {
    "offers": ("buyer_id", "seller_id"),
    "orders": ("buyer_id", "seller_id"),
    "reviews": ("reviewee_id", "reviewer_id"),
    "vinyl_records": ("seller_id",),
}

Table = Literal["offers", "orders", "reviews", "vinyl_records"]


async def change_events(
    feed: ChangeFeed,
    user_id: UserId,
    tables: list[str],
    heartbeat_seconds: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE lines for every change the caller owns on the given tables."""
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribers = [
        feed.subscribe(table, {column: user_id}, queue.put_nowait)
        for table in tables
        for column in OWNER_COLUMNS[table]
    ]
    try:
        yield _sse_line({"type": "subscribed", "data": {"tables": tables}})
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            yield _sse_line({"type": "change", "data": event.to_dict()})
    except asyncio.CancelledError:
        logger.info("Client disconnected from change stream", extra={"user_id": str(user_id)})
        raise
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()


@router.get("/stream")
async def stream_changes(
    table: Table | None = Query(None),
    user_id: UserId = Depends(get_current_user_id),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """SSE stream of the caller's row changes; all owned tables unless `table` is given."""
    tables = [table] if table else list(OWNER_COLUMNS)
    return StreamingResponse(
        change_events(feed, user_id, tables),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )


def _sse_line(event: dict) -> str:
    """Format event as SSE data line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
