"""API response schemas for the Event Crawler REST API.

This module defines Pydantic models for API response payloads other than
the scan result itself, which is the ScanResult model.
"""

from datetime import datetime
from typing import Dict, Any, Optional, Literal
from pydantic import BaseModel, Field

from event_crawler.models.scan import ScanResult


ScanEventsResponse = ScanResult


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Used for framework-level failures (unknown routes, unparseable bodies)
    that never reach the scan pipeline.
    """

    error: str = Field(
        ...,
        description="Error code or type"
    )

    message: str = Field(
        ...,
        description="Human-readable error message"
    )

    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details for debugging"
    )

    request_id: Optional[str] = Field(
        default=None,
        description="Unique request identifier for tracking"
    )

    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred"
    )

    class Config:
        """Pydantic configuration with examples for OpenAPI documentation."""
        json_schema_extra = {
            "example": {
                "error": "validation_error",
                "message": "Request validation failed",
                "details": {"validation_errors": [{"field": "", "message": "JSON decode error"}]},
                "request_id": "5f0c6a1e-8d2b-4d47-9a51-1f1d7f6c2b11",
                "timestamp": "2024-01-15T11:00:00Z"
            }
        }


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal['healthy', 'degraded', 'unhealthy'] = Field(
        ...,
        description="Overall system health status"
    )

    version: str = Field(
        ...,
        description="API version"
    )

    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="Health check timestamp"
    )

    services: Dict[str, Literal['healthy', 'degraded', 'unhealthy']] = Field(
        ...,
        description="Health status of individual services"
    )

    uptime_seconds: float = Field(
        ...,
        ge=0,
        description="Application uptime in seconds"
    )
