"""Data models for Event Crawler scans."""

from .scan import (
    UNNAMED_EVENT,
    ScanState,
    ScanRequest,
    ScannedEvent,
    ScanResult,
    ScanReport,
)

__all__ = [
    'UNNAMED_EVENT',
    'ScanState',
    'ScanRequest',
    'ScannedEvent',
    'ScanResult',
    'ScanReport',
]
