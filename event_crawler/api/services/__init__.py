"""Service layer for the Event Crawler API."""

from .scan_service import ScanService

__all__ = [
    "ScanService",
]
