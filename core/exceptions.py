"""
Custom exceptions for PrintQueueWeb.

Exception Hierarchy:
    PrintQueueError (base)
    ├── ValidationError   - Bad request payload (400)
    ├── NotFoundError     - Unknown queue item or invoice id (404)
    ├── ConflictError     - Request does not fit the resource's state (409)
    ├── ConstraintError   - Database rejected a write (400)
    ├── ExtractionError   - Invoice pipeline failed (stored on the invoice)
    ├── LLMServiceError   - Ollama request failed (wrapped by ExtractionError)
    └── InternalError     - Anything else (500)

Usage:
    Route handlers let these propagate; the error handlers registered in
    create_app() turn them into the JSON envelope using ``status_code``.
    ExtractionError never reaches a client directly: processing runs in the
    background and the message is recorded as the invoice's processingError.
"""

from typing import Optional, Dict, Any


class PrintQueueError(Exception):
    """
    Base exception for all PrintQueueWeb errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    status_code = 500
    error_label = "Internal server error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# REQUEST ERRORS - The caller sent something we cannot act on
# =============================================================================

class ValidationError(PrintQueueError):
    """Request body or parameter has the wrong shape or type."""

    status_code = 400
    error_label = "Validation failed"

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else None
        super().__init__(message, details)
        self.field = field


class NotFoundError(PrintQueueError):
    """A queue item or invoice id does not exist."""

    status_code = 404
    error_label = "Resource not found"

    def __init__(self, resource: str, resource_id: Any):
        message = f"{resource} not found"
        super().__init__(message, {"id": resource_id})
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(PrintQueueError):
    """The resource is in a state that does not allow the request."""

    status_code = 409
    error_label = "Conflict"


class ConstraintError(PrintQueueError):
    """
    The database refused a write.

    Raised in place of the driver's IntegrityError so callers never depend
    on which database backend is configured.
    """

    status_code = 400
    error_label = "Database constraint violation"


# =============================================================================
# PIPELINE ERRORS - Raised inside background invoice processing
# =============================================================================

class ExtractionError(PrintQueueError):
    """
    Invoice extraction failed as a whole.

    Covers rasterization failures, PDFs that yield no pages, and any
    per-page model call that raised. Partial results are never returned
    alongside this error.
    """

    status_code = 422
    error_label = "Extraction failed"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        details = {"cause": type(cause).__name__} if cause is not None else None
        super().__init__(message, details)
        self.cause = cause

    def __str__(self) -> str:
        # Stored verbatim as processingError, keep it free of the details suffix
        return self.message


class LLMServiceError(PrintQueueError):
    """
    The Ollama server could not be reached or answered with an error.

    Typical causes:
    - Ollama not running (ollama serve)
    - Model not pulled (ollama pull llava)
    - Request exceeded OLLAMA_TIMEOUT_SECONDS
    """

    status_code = 502
    error_label = "Model service unavailable"

    def __init__(self, message: str, status: Optional[int] = None):
        details = {"http_status": status} if status is not None else None
        super().__init__(message, details)
        self.status = status


class InternalError(PrintQueueError):
    """Unexpected server-side failure."""

    status_code = 500
    error_label = "Internal server error"
