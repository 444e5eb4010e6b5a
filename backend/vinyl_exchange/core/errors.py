"""Error Hierarchy — typed, categorized exceptions for all marketplace failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope; to_event() produces the change-stream envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with MarketplaceError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - StateError and ConflictError share HTTP 409 but not a code: the client retries
      a conflict by re-reading, a state error by choosing another action
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    offer_id: str | None = None
    order_id: str | None = None
    listing_id: str | None = None
    payment_session_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "offer_id": self.context.offer_id,
                    "order_id": self.context.order_id,
                    "listing_id": self.context.listing_id,
                    "payment_session_id": self.context.payment_session_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }

    def to_event(self) -> dict:
        """Convert to change-stream error event."""
        return {
            "type": "error",
            "data": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "severity": self.severity.value,
                "recoverable": self.severity in (
                    ErrorSeverity.INFO, ErrorSeverity.WARNING,
                ),
            },
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(MarketplaceError):
    """Malformed input: non-positive amount, missing rating, too few images."""
    def __init__(
        self, message: str, field: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class AuthenticationError(MarketplaceError):
    """No usable caller identity on the request."""
    def __init__(self, message: str = "Authentication required", context: ErrorContext | None = None):
        super().__init__(
            message, "UNAUTHENTICATED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class AuthorizationError(MarketplaceError):
    """Acting user does not own the resource they are trying to change."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "FORBIDDEN", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.ERROR, context, 403,
        )


class NotFoundError(MarketplaceError):
    """Referenced offer/order/listing absent (or invisible to the caller)."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class StateError(MarketplaceError):
    """Operation invalid for the entity's current lifecycle state."""
    def __init__(
        self, message: str, current_status: str | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "INVALID_STATE", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current_status = current_status


class ConflictError(MarketplaceError):
    """Duplicate write, e.g. a second review for the same (order, reviewer)."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class PaymentError(MarketplaceError):
    """Payment processor call failed or timed out."""
    def __init__(
        self,
        message: str,
        processor_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        category = (
            ErrorCategory.TIMEOUT if processor_error_type == "timeout"
            else ErrorCategory.EXTERNAL_API
        )
        super().__init__(
            f"Payment processor error ({processor_error_type}): {message}",
            "PAYMENT_ERROR", category,
            ErrorSeverity.CRITICAL, ctx, 502,
        )
        self.processor_error_type = processor_error_type


class DatabaseError(MarketplaceError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
