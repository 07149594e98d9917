"""Common API envelope and error models."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    """Metadata attached to every API response."""

    timestamp: datetime = Field(..., description="Server time the response was built")
    request_id: str = Field(..., description="Request correlation ID")
    api_version: str = Field(default="v1", description="API version")


class ApiResponse(BaseModel):
    """Standard success envelope."""

    status: bool = Field(default=True, description="Whether the operation succeeded")
    message: str = Field(..., description="Human readable outcome")
    data: Dict[str, Any] = Field(default_factory=dict, description="Operation payload")
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """Problem details body (RFC 7807)."""

    title: str = Field(..., description="Short summary of the problem type")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Explanation specific to this occurrence")
    instance: Optional[str] = Field(None, description="Request path that produced the error")
    request_id: str = Field(..., description="Request correlation ID")
    timestamp: datetime = Field(..., description="Server time the error was built")
    extra: Optional[Dict[str, Any]] = Field(None, description="Structured error context")


class HealthCheckResponse(BaseModel):
    """Health check response model."""

    status: str = Field(
        default="healthy",
        description="Service health status",
        examples=["healthy", "unhealthy"],
    )
    version: str = Field(..., description="Application version", examples=["0.1.0"])
    service: str = Field(..., description="Service name", examples=["Launchpad"])
    database: Optional[Dict[str, Any]] = Field(None, description="Database health details")
