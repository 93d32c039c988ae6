"""
Strict Base Models for API Request/Response Validation

Base classes with strict validation settings for the job API contract.

Usage:
    # For request bodies (strictest validation)
    class JobCreate(StrictRequest):
        job_type: JobType
        input_data: dict

    # For response bodies (allows extra fields from DB)
    class JobResponse(StrictResponse):
        job_id: str
        status: JobStatus

Architecture:
    API Request → StrictRequest (extra="forbid") → Route Handler
    DB Model → StrictResponse (extra="ignore") → API Response
"""

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base model for API request bodies with strict validation.

    Rejects any fields not explicitly declared in the model, catching
    client typos at request time rather than at processing time.

    Features:
        - extra="forbid": Unknown fields raise 422 Unprocessable Entity
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
    """

    model_config = ConfigDict(
        extra="forbid",  # Reject unknown fields
        validate_default=True,  # Validate defaults
        str_strip_whitespace=True,  # Clean string inputs
    )


class StrictResponse(BaseModel):
    """
    Base model for API response bodies.

    More lenient than StrictRequest: extra attributes on the source
    object are ignored, and ORM rows convert directly.

    Example:
        >>> JobRecord.model_validate(job_row)
    """

    model_config = ConfigDict(
        extra="ignore",  # Allow extra fields in responses
        validate_default=True,  # Validate defaults
        from_attributes=True,  # Enable ORM conversion
    )
