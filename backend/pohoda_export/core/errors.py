"""Error Hierarchy — typed, categorized exceptions for all export failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are permanent for a job; transport errors (502) are retryable
    - to_response() produces the REST envelope {"error": {...}}
    - PohodaTransportError always carries the payload log of the failed exchange

Design Decisions:
    - Single hierarchy with PohodaExportError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - Retryability is decided by type (transport vs validation), not by inspecting messages
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
    SCHEMA = "schema"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    order_id: int | None = None
    job_id: str | None = None
    payload_log: dict[str, str | None] | None = None
    debug_info: dict[str, Any] | None = None


class PohodaExportError(Exception):
    """Base exception for all export pipeline errors."""

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
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "order_id": self.context.order_id,
                    "job_id": self.context.job_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvoiceValidationError(PohodaExportError):
    """Order cannot be turned into an invoice (no items, malformed pricing)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVOICE_VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field

    def to_response(self) -> dict:
        body = super().to_response()
        body["error"]["field"] = self.field
        return body


class SchemaValidationError(PohodaExportError):
    """Generated XML failed XSD self-validation — a builder defect."""
    def __init__(
        self, document: str, errors: list[str], context: ErrorContext | None = None,
    ):
        summary = "; ".join(errors[:3]) or "unknown schema violation"
        super().__init__(
            f"{document} XML failed schema validation: {summary}",
            "SCHEMA_VALIDATION_ERROR", ErrorCategory.SCHEMA,
            ErrorSeverity.CRITICAL, context, 400,
        )
        self.errors = errors

    def to_response(self) -> dict:
        body = super().to_response()
        body["error"]["details"] = self.errors
        return body


class ResourceNotFoundError(PohodaExportError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class ExportJobConflictError(PohodaExportError):
    """Operation not allowed in the job's current state."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "EXPORT_JOB_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(PohodaExportError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class PohodaTransportError(PohodaExportError):
    """Pohoda mServer call failed: network, HTTP status, unreadable or rejected response.

    api_error_type is one of: timeout, connection_error, http_status,
    remote_error, malformed_response.
    """
    def __init__(
        self,
        message: str,
        api_error_type: str,
        status_code: int | None = None,
        payload: str | None = None,
        payload_log: dict[str, str | None] | None = None,
        response=None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        if payload_log is not None:
            ctx.payload_log = payload_log
        super().__init__(
            f"Pohoda error ({api_error_type}): {message}",
            "POHODA_TRANSPORT_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, ctx, 502,
        )
        self.api_error_type = api_error_type
        self.status_code = status_code
        self.payload = payload
        self.response = response

    @property
    def payload_log(self) -> dict[str, str | None] | None:
        return self.context.payload_log

    def with_payload_log(self, payload_log: dict[str, str | None] | None):
        """Attach the stored request/response paths once they are known."""
        if payload_log is not None:
            self.context.payload_log = payload_log
        return self

    def to_response(self) -> dict:
        body = super().to_response()
        body["error"]["api_error_type"] = self.api_error_type
        body["error"]["status_code"] = self.status_code
        body["error"]["payload_log"] = self.payload_log
        if self.response is not None:
            body["error"]["errors"] = list(self.response.errors)
        return body
