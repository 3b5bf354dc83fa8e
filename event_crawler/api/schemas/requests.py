"""API request schemas for the Event Crawler REST API."""

from event_crawler.models.scan import ScanRequest


class ScanEventsRequest(ScanRequest):
    """Request schema for scanning a page's analytics events.

    ``url`` is validated by the scan pipeline rather than by the schema, so
    a missing or malformed URL is answered in the uniform scan result shape
    with a 400 status and no browser is launched.
    """

    class Config:
        """Pydantic configuration with examples for OpenAPI documentation."""
        json_schema_extra = {
            "example": {
                "url": "https://example.com/checkout"
            }
        }
