"""Database Session Manager — one async engine per process, request-scoped sessions.

Invariants:
    - A session that raises is rolled back before the error leaves the context
    - MarketplaceError propagates unchanged; services already chose its code
    - A constraint violation that escapes a service surfaces as ConflictError (409):
      the write lost to a concurrent one (e.g. uq_orders_open_listing) and may be retried
    - Other SQLAlchemy failures surface as DatabaseError (503)
    - SQLite URLs get the driver's default pool: pool_size/max_overflow apply to servers only

Design Decisions:
    - Singleton db_manager initialized and disposed by the FastAPI lifespan
    - expire_on_commit=False: services read committed rows back without a lazy load
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import (
    IntegrityError, OperationalError, DBAPIError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)

from vinyl_exchange.core.errors import ConflictError, DatabaseError, MarketplaceError

logger = logging.getLogger(__name__)


def map_db_error(e: SQLAlchemyError) -> MarketplaceError:
    """Translate a driver/ORM failure into the marketplace error the API reports."""
    if isinstance(e, IntegrityError):
        return ConflictError("This change conflicts with another write; reload and retry")
    if isinstance(e, OperationalError):
        return DatabaseError("Connection or operational error", "execute")
    if isinstance(e, DBAPIError):
        return DatabaseError("Database driver error", "query")
    return DatabaseError("Database operation failed", "unknown")


class DatabaseSessionManager:
    """Owns the engine and hands out sessions that roll back on failure."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True}
        if make_url(database_url).get_backend_name() != "sqlite":
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except MarketplaceError:
            await session.rollback()
            raise
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"{type(e).__name__} escaped a request: {e}")
            raise map_db_error(e)
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """SELECT 1 through a pooled session; False instead of raising (readiness)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs):
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)


async def close_db():
    global db_manager
    if db_manager is not None:
        await db_manager.close()
        db_manager = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    async with db_manager.session() as session:
        yield session
