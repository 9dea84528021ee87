"""
eLabel API — Shared Response Schemas
=====================================

What:  Error envelopes and health/status payloads used across routers.
Why:   Clients parse every error the same way: a machine-readable `error`
       code, a human-readable `message`, and the `request_id` for tracing.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "Label not found for that identifierCode",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class FieldError(BaseModel):
    field: str = Field(description="camelCase field name, dotted for nested fields")
    message: str = Field(description="What is wrong with the value")


class ValidationErrorResponse(ErrorResponse):
    """400 body: the error envelope plus one entry per invalid field."""
    errors: List[FieldError] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """
    What:  Service health with the result of the database probe.
    Who:   Returned by GET /health for container health checks.
    """
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


class StatusResponse(BaseModel):
    status: str = Field(default="ok")
