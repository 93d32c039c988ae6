"""
Error Handling Middleware and Service Exceptions

Provides consistent, informative error responses across the API and the
exception hierarchy shared by the notes pipeline, job queue and worker.

Features:
- Standardized error response format
- Correlation IDs for log tracking
- Sanitized responses (hides internal details in production)
- Custom exception classes for different error types

Usage:
    from app.middleware.error_handling import ErrorHandlingMiddleware, ServiceError

    # Add middleware to app
    app.add_middleware(ErrorHandlingMiddleware)

    # Raise custom exceptions
    raise NotFoundError(f"Job {job_id} not found")

Exception handling hierarchy:
    - HTTPException: Re-raised for FastAPI's built-in handler
    - ServiceError: Custom exceptions → structured JSON response
    - Exception: Catch-all for unexpected errors → sanitized response

    The pipeline and worker use the same classes outside of HTTP requests:
    a GenerationError's kind drives retry decisions, and any ServiceError
    reaching the worker's job boundary becomes the job's error message.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from app.enums.generation import GenerationErrorKind

logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Schema
# =============================================================================


class ErrorResponse(BaseModel):
    """Standardized error response."""

    error: str  # Error code (e.g., "not_found")
    message: str  # Human-readable message
    error_id: str  # For log correlation
    details: Optional[dict] = None  # Additional context (sanitized)
    timestamp: datetime


# =============================================================================
# Custom Exceptions
# =============================================================================


class ServiceError(Exception):
    """
    Base exception for service errors.

    Provides consistent error handling with:
    - HTTP status code
    - Error code for categorization
    - Optional details for debugging

    Example:
        raise ServiceError("Database connection failed", status_code=503)
    """

    status_code: int = 500
    error_code: str = "service_error"

    def __init__(
        self,
        message: str,
        status_code: int = None,
        error_code: str = None,
        details: dict = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        if error_code:
            self.error_code = error_code
        self.details = details


class GenerationError(ServiceError):
    """
    Text-generation call failed.

    Raised by the generation client and by the timeout wrapper around it.
    The kind tells retry loops whether another attempt can succeed.
    """

    status_code = 502
    error_code = "generation_error"

    def __init__(
        self,
        message: str,
        kind: GenerationErrorKind = GenerationErrorKind.UNKNOWN,
        details: dict = None,
    ):
        super().__init__(message, details=details)
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class AllChunksFailedError(ServiceError):
    """
    Every chunk of a job failed, or all of them produced empty output.

    Carries the failed chunk records so the job failure can report
    which word ranges were affected.
    """

    status_code = 502
    error_code = "all_chunks_failed"

    def __init__(self, message: str, failed_chunks: Optional[list] = None):
        super().__init__(message)
        self.failed_chunks = failed_chunks or []


class ExtractionError(ServiceError):
    """
    Text extraction or transcription failed.

    Fatal for the job; not retried at this layer.
    """

    status_code = 502
    error_code = "extraction_error"


class InputError(ServiceError):
    """
    Submitted content cannot be processed.

    Raised for empty content, content that yields no chunks, and job input
    that does not match its job type.
    """

    status_code = 422
    error_code = "input_error"


class NotFoundError(ServiceError):
    """
    Resource not found error.

    Raised when a requested resource doesn't exist.
    """

    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """
    Operation not allowed in the job's current state.

    Raised when cancelling a claimed job or retrying one that is not
    failed or has used up its retries.
    """

    status_code = 409
    error_code = "conflict"


# =============================================================================
# Error Handling Middleware
# =============================================================================


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    - Catches unhandled exceptions
    - Logs with correlation ID
    - Returns consistent error format
    - Hides internal details in production
    """

    def __init__(self, app, debug: bool = False):
        """
        Initialize middleware.

        Args:
            app: FastAPI/Starlette application
            debug: Whether to include stack traces in responses
        """
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any errors."""
        error_id = str(uuid4())[:8]

        try:
            return await call_next(request)

        except HTTPException:
            raise

        except ServiceError as e:
            logger.error(
                f"[{error_id}] {e.error_code}: {e.message}",
                extra={
                    "error_id": error_id,
                    "error_code": e.error_code,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            return create_error_response(
                error_code=e.error_code,
                message=e.message,
                status_code=e.status_code,
                details=e.details if self.debug else None,
                error_id=error_id,
            )

        except Exception as e:
            logger.error(
                f"[{error_id}] Unhandled error: {type(e).__name__}: {e}",
                extra={
                    "error_id": error_id,
                    "path": request.url.path,
                    "method": request.method,
                    "traceback": traceback.format_exc(),
                },
            )

            details = None
            if self.debug:
                details = {
                    "exception": type(e).__name__,
                    "message": str(e),
                    "traceback": traceback.format_exc(),
                }

            return create_error_response(
                error_code="internal_server_error",
                message="An unexpected error occurred",
                status_code=500,
                details=details,
                error_id=error_id,
            )


# =============================================================================
# Setup Function
# =============================================================================


def setup_error_handling(app: FastAPI, debug: bool = False) -> None:
    """
    Configure error handling on the FastAPI app.

    Args:
        app: FastAPI application instance
        debug: Whether to include stack traces in responses
    """
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
    logger.info(f"Error handling middleware enabled (debug={debug})")


# =============================================================================
# Helper Functions
# =============================================================================


def create_error_response(
    error_code: str,
    message: str,
    status_code: int = 500,
    details: dict = None,
    error_id: Optional[str] = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        error_code: Error code for categorization
        message: Human-readable error message
        status_code: HTTP status code
        details: Optional additional details
        error_id: Correlation id already used in logs, generated if missing

    Returns:
        JSONResponse with standardized error format
    """
    body = ErrorResponse(
        error=error_code,
        message=message,
        error_id=error_id or str(uuid4())[:8],
        details=details,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
