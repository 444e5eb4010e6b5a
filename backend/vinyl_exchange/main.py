"""Vinyl Exchange API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map MarketplaceError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database initialized on startup and disposed on shutdown via the lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py to keep this module's imports small
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vinyl_exchange.infrastructure.database import close_db, init_db
from vinyl_exchange.infrastructure.observability import setup_logging
from vinyl_exchange.config import get_settings
from vinyl_exchange.api.error_handlers import register_error_handlers
from vinyl_exchange.api.routes import (
    changes, fees, health, listings, offers, orders, payments, reviews,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info("Vinyl Exchange API started")
    yield
    logger.info("Vinyl Exchange API shutting down")
    await close_db()


app = FastAPI(
    title="Vinyl Exchange API", version="1.0.0", lifespan=lifespan,
)

# CORS from settings
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(health.router)
app.include_router(fees.router)
app.include_router(listings.router)
app.include_router(offers.router)
app.include_router(payments.router)
app.include_router(orders.router)
app.include_router(reviews.router)
app.include_router(changes.router)

register_error_handlers(app)
