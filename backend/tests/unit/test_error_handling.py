"""
Unit tests for the error handling middleware and service exceptions.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.enums.generation import GenerationErrorKind
from app.middleware.error_handling import (
    AllChunksFailedError,
    ConflictError,
    ErrorResponse,
    GenerationError,
    InputError,
    NotFoundError,
    ServiceError,
    setup_error_handling,
)


def build_app(debug: bool = False) -> FastAPI:
    app = FastAPI()
    setup_error_handling(app, debug=debug)

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Job abc not found", details={"job_id": "abc"})

    @app.get("/conflict")
    async def conflict():
        raise ConflictError("Job cannot be cancelled in status 'processing'")

    @app.get("/unavailable")
    async def unavailable():
        raise ServiceError("No worker", status_code=503, error_code="worker_unavailable")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    return app


# =============================================================================
# Middleware
# =============================================================================


class TestErrorHandlingMiddleware:
    """Tests for ErrorHandlingMiddleware responses."""

    def test_service_error_response(self):
        client = TestClient(build_app())

        response = client.get("/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["message"] == "Job abc not found"
        assert len(body["error_id"]) == 8
        assert body["details"] is None
        assert "timestamp" in body

    def test_details_only_in_debug(self):
        client = TestClient(build_app(debug=True))

        response = client.get("/missing")

        assert response.json()["details"] == {"job_id": "abc"}

    def test_body_matches_error_response_schema(self):
        response = TestClient(build_app()).get("/conflict")

        body = ErrorResponse.model_validate(response.json())

        assert body.error == "conflict"
        assert body.message == "Job cannot be cancelled in status 'processing'"
        assert body.timestamp.tzinfo is not None

    def test_conflict(self):
        response = TestClient(build_app()).get("/conflict")

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_custom_status_and_code(self):
        response = TestClient(build_app()).get("/unavailable")

        assert response.status_code == 503
        assert response.json()["error"] == "worker_unavailable"

    def test_unhandled_error_is_sanitized(self):
        response = TestClient(build_app(), raise_server_exceptions=False).get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "internal_server_error"
        assert "secret internals" not in response.text


# =============================================================================
# Exceptions
# =============================================================================


class TestServiceExceptions:
    """Tests for exception defaults and helpers."""

    @pytest.mark.parametrize(
        "kind,retryable",
        [
            (GenerationErrorKind.NETWORK, True),
            (GenerationErrorKind.RATE_LIMIT, True),
            (GenerationErrorKind.TIMEOUT, True),
            (GenerationErrorKind.UNKNOWN, True),
            (GenerationErrorKind.AUTH, False),
            (GenerationErrorKind.BAD_REQUEST, False),
        ],
    )
    def test_generation_error_retryable(self, kind, retryable):
        assert GenerationError("failed", kind=kind).retryable is retryable

    def test_generation_error_defaults(self):
        error = GenerationError("failed")

        assert error.kind == GenerationErrorKind.UNKNOWN
        assert error.status_code == 502
        assert error.error_code == "generation_error"

    def test_input_error_status(self):
        assert InputError("No content to process").status_code == 422

    def test_all_chunks_failed_keeps_records(self):
        error = AllChunksFailedError("All 2 chunks failed", failed_chunks=["a", "b"])

        assert error.failed_chunks == ["a", "b"]
        assert str(error) == "All 2 chunks failed"
