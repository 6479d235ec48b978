"""Structured error response schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error response structure.

    Gate errors keep their message verbatim so the client can render it.
    """

    error: str = Field(..., description="Machine-readable error code (e.g., 'monthly_limit_exceeded')")
    message: str = Field(..., description="Primary error message, safe to display")
    details: list[ErrorDetail] | None = Field(default=None, description="Detailed error information")
    remediation: str | None = Field(default=None, description="Suggestion for resolving the error")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


class ErrorCode:
    """Error codes produced outside the gating error classes."""

    VALIDATION_ERROR = "validation_error"
    DATABASE_ERROR = "database_error"
    INTERNAL_ERROR = "internal_error"
    CAPACITY_REACHED = "capacity_reached"
    WAITLIST_NOT_REQUIRED = "waitlist_not_required"


# Remediation hints keyed by error code
REMEDIATION_HINTS = {
    "monthly_limit_exceeded": "Your monthly quota resets at the start of next month. Upgrade your plan for a higher limit.",
    "feature_not_allowed": "Upgrade to a plan that includes this feature.",
    "subscription_not_active": "Update your billing details to reactivate your subscription.",
    "no_subscription": "Please contact support with the request ID.",
    "capacity_check_failed": "Please try again in a few moments.",
    ErrorCode.CAPACITY_REACHED: "Paid plans are full. Join the waitlist to be notified when a seat opens.",
    ErrorCode.DATABASE_ERROR: "Database temporarily unavailable. Please try again in a few moments.",
}
