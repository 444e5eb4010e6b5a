"""Conditional Update — single-statement compare-and-set writes for lifecycle transitions.

Invariants:
    - Every status transition is ONE UPDATE whose WHERE clause includes the observed state
    - rowcount == 0 means a concurrent writer won; callers re-read and raise, never overwrite
    - updated_at stamped on every successful write

Design Decisions:
    - synchronize_session=False + explicit re-read with populate_existing: the identity map
      never serves a row image older than the committed one
    - No in-process locks: correctness comes from the database's row-level atomicity
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def compare_and_set(
    db: AsyncSession,
    model: type,
    row_id: UUID,
    guard: dict[str, Any],
    values: dict[str, Any],
) -> bool:
    """UPDATE model SET values WHERE id = row_id AND guard columns match. True if applied."""
    criteria = [model.id == row_id]
    for column, expected in guard.items():
        attr = getattr(model, column)
        if isinstance(expected, (set, frozenset, list, tuple)):
            criteria.append(attr.in_([getattr(v, "value", v) for v in expected]))
        elif expected is None:
            criteria.append(attr.is_(None))
        else:
            criteria.append(attr == getattr(expected, "value", expected))
    stmt = (
        update(model)
        .where(*criteria)
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def reload(db: AsyncSession, model: type, row_id: UUID):
    """Fresh read that overwrites any cached instance of the row."""
    result = await db.execute(
        select(model)
        .where(model.id == row_id)
        .execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()
