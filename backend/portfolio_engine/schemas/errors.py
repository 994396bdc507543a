# backend/portfolio_engine/schemas/errors.py
"""
Error response schemas shared by every endpoint.

The exception handlers in main.py render domain errors with ErrorDetail
and request validation failures with ValidationErrorDetail.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Standard error body."""

    error: str = Field(
        ...,
        description="Error type (e.g., 'ValidationError', 'RateLimitError')"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )
    details: dict | None = Field(
        default=None,
        description="Additional error context (optional)"
    )


class ValidationErrorDetail(BaseModel):
    """Body of 422 responses."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict] = Field(
        ...,
        description="One entry per invalid field"
    )
