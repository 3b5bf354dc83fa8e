"""API schemas for the Event Crawler REST API."""

from .requests import ScanEventsRequest

from .responses import (
    ScanEventsResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    "ScanEventsRequest",
    "ScanEventsResponse",
    "ErrorResponse",
    "HealthResponse",
]
