"""
Middleware Package

Provides FastAPI error handling middleware and the service exception
hierarchy used across the pipeline, queue and worker.
"""

from app.middleware.error_handling import (
    AllChunksFailedError,
    ConflictError,
    ErrorHandlingMiddleware,
    ExtractionError,
    GenerationError,
    InputError,
    NotFoundError,
    ServiceError,
    setup_error_handling,
)

__all__ = [
    "AllChunksFailedError",
    "ConflictError",
    "ErrorHandlingMiddleware",
    "ExtractionError",
    "GenerationError",
    "InputError",
    "NotFoundError",
    "ServiceError",
    "setup_error_handling",
]
