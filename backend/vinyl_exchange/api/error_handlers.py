"""Error Handlers — global exception handlers for the marketplace API.

Invariants:
    - MarketplaceError → structured JSON with error code, message, severity, context
    - RequestValidationError → 400 with field-level error details
    - Exception (catch-all) → 500, never leaks internal details

Design Decisions:
    - Three-layer handler: domain (MarketplaceError), validation (Pydantic), catch-all (Exception)
    - 4xx domain errors logged at warning, 5xx at error: client mistakes are not incidents
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from vinyl_exchange.core.errors import MarketplaceError, ErrorSeverity

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_marketplace_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_marketplace_error_handler(app: FastAPI) -> None:
    """Register marketplace domain/infrastructure error handler."""

    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        level = logging.ERROR if exc.http_status >= 500 else logging.WARNING
        logger.log(
            level,
            f"{type(exc).__name__}: {exc.message}",
            extra={
                "error_code": exc.code,
                "path": request.url.path,
                "payment_session_id": exc.context.payment_session_id,
            },
        )
        headers = None
        if exc.context.retry_after_ms:
            headers = {"Retry-After": str(max(1, exc.context.retry_after_ms // 1000))}
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(), headers=headers,
        )


def _register_validation_error_handler(app: FastAPI) -> None:
    """Register Pydantic validation error handler."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    """Register catch-all error handler."""

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    """Build structured validation error response."""
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
