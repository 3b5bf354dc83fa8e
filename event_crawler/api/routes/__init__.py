"""API routes for the Event Crawler REST API."""

from .scans import router as scans_router

__all__ = [
    "scans_router",
]
