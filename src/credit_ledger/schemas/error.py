"""Structured error response schemas."""
from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error response structure.

    This provides consistent error responses across the API with:
    - Machine-readable error codes
    - Human-readable messages
    - Remediation hints
    - Request tracing information
    """

    error: str = Field(..., description="Error type (e.g., 'ValidationError', 'NotFound', 'PaymentGatewayError')")
    message: str = Field(..., description="Primary error message")
    details: list[ErrorDetail] | None = Field(
        default=None, description="Detailed error information (for validation errors)"
    )
    remediation: str | None = Field(default=None, description="Suggestion for fixing the error")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "ValidationError",
                "message": "CPF/CNPJ is required on the team profile to issue a charge",
                "details": [
                    {
                        "code": "missing_tax_id",
                        "message": "CPF/CNPJ is required on the team profile to issue a charge",
                        "field": "tax_id",
                    }
                ],
                "remediation": "Add a CPF or CNPJ to the team profile and try again",
                "request_id": "req_abc123xyz",
                "timestamp": "2025-01-15T10:30:00Z",
            }
        }
    )


# Error codes enum for consistency
class ErrorCode:
    """Standard error codes used across the API."""

    # Validation errors (400)
    INVALID_AMOUNT = "invalid_amount"
    INVALID_CREDITS = "invalid_credits"
    MISSING_TAX_ID = "missing_tax_id"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_ENUM_VALUE = "invalid_enum_value"

    # Not found errors (404)
    TEAM_NOT_FOUND = "team_not_found"
    PLAN_NOT_FOUND = "plan_not_found"

    # Authentication errors (401)
    INVALID_TOKEN = "invalid_token"

    # External service errors (502, 503, 504)
    GATEWAY_API_ERROR = "gateway_api_error"
    GATEWAY_TIMEOUT = "gateway_timeout"
    DATABASE_ERROR = "database_error"

    # Internal errors (500)
    INTERNAL_ERROR = "internal_error"


# Remediation hints for common errors
REMEDIATION_HINTS = {
    ErrorCode.INVALID_CREDITS: "Request a positive number of credits",
    ErrorCode.INVALID_AMOUNT: "Omit the amount or send the price quoted for the requested credits",
    ErrorCode.MISSING_TAX_ID: "Add a CPF or CNPJ to the team profile and try again",
    ErrorCode.TEAM_NOT_FOUND: "Verify the authenticated user belongs to a team",
    ErrorCode.PLAN_NOT_FOUND: "Verify the plan ID is correct and the plan is active",
    ErrorCode.GATEWAY_API_ERROR: "The payment gateway is temporarily unavailable. Please try again later.",
    ErrorCode.GATEWAY_TIMEOUT: "The invoice was not generated in time. Check your email for the payment link.",
    ErrorCode.DATABASE_ERROR: "Database temporarily unavailable. Please try again in a few moments.",
}
