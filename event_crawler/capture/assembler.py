"""Response assembly for scan requests.

The ResponseAssembler validates inbound URLs before any browser resource is
acquired and shapes every outcome into the uniform ScanResult contract:

- success: ``{success: true, events, message: "Captured N event(s)"}``
- failure: ``{success: false, events: [], error: <message>}``
"""

import logging
from typing import Any, List, Optional

from ..errors import (
    ScanError,
    InvalidURLError,
    ScanDeadlineExceeded,
)
from ..models.scan import ScannedEvent, ScanResult, ScanReport
from ..utils.url_validator import validate_scan_url

logger = logging.getLogger(__name__)


GENERIC_ERROR_MESSAGE = "An error occurred while scanning events"


class ResponseAssembler:
    """Validates scan input and normalizes scan output."""

    def validate(self, url: Any) -> str:
        """Validate the requested URL.

        Raises:
            InvalidURLError: If the URL is missing or malformed
        """
        return validate_scan_url(url)

    def success(self, events: List[ScannedEvent]) -> ScanResult:
        """Wrap captured events; zero events is a valid outcome."""
        return ScanResult(
            success=True,
            events=list(events),
            message=f"Captured {len(events)} event(s)"
        )

    def failure(self, error: Optional[BaseException] = None) -> ScanResult:
        """Build the failure shape; events are always empty."""
        message = str(error) if error is not None and str(error) else GENERIC_ERROR_MESSAGE
        return ScanResult(success=False, events=[], error=message)

    def status_code(self, report: ScanReport) -> int:
        """HTTP status for a scan report.

        400 for rejected input, 504 for an expired deadline, 500 for any
        other failure, 200 for a completed scan regardless of event count.
        """
        if report.result.success:
            return 200
        if isinstance(report.error, InvalidURLError):
            return 400
        if isinstance(report.error, ScanDeadlineExceeded):
            return 504
        return 500

    @staticmethod
    def describe(error: BaseException) -> str:
        """Short classification used in logs."""
        if isinstance(error, ScanError):
            return type(error).__name__
        return f"unexpected {type(error).__name__}"
