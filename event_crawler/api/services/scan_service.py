"""Scan service layer for the Event Crawler API and CLI.

This module runs scans on behalf of callers and enforces the overall
per-request deadline. Exceeding the deadline cancels the in-flight scan; the
scan's browser session is released as part of the cancellation.
"""

import asyncio
import logging
import time
from typing import Any, Optional

from event_crawler.capture.engine import ScanEngine, ScanEngineConfig
from event_crawler.errors import ScanDeadlineExceeded
from event_crawler.models.scan import ScanReport, ScanState

logger = logging.getLogger(__name__)


class ScanService:
    """Runs bounded scans and maps them to response status codes."""

    def __init__(
        self,
        engine: Optional[ScanEngine] = None,
        deadline_s: Optional[float] = None,
    ):
        """Initialize scan service.

        Args:
            engine: Scan engine (defaults to one built from default config)
            deadline_s: Per-request deadline; defaults to the engine's
                ``request_deadline_s``

        Raises:
            ValueError: If the deadline is not positive
        """
        self.engine = engine or ScanEngine(ScanEngineConfig())
        if deadline_s is None:
            deadline_s = self.engine.config.request_deadline_s
        if deadline_s <= 0:
            raise ValueError("deadline_s must be positive")
        self.deadline_s = deadline_s

    async def scan(self, url: Any, **session_overrides) -> ScanReport:
        """Scan ``url`` within the deadline.

        Args:
            url: Requested page URL (unvalidated)
            **session_overrides: Page session configuration overrides

        Returns:
            ScanReport; never raises for scan failures
        """
        started = time.monotonic()
        try:
            return await asyncio.wait_for(
                self.engine.scan(url, **session_overrides),
                timeout=self.deadline_s
            )
        except asyncio.TimeoutError:
            error = ScanDeadlineExceeded(self.deadline_s)
            logger.error(f"Scan of {url} cancelled: {error}")
            return ScanReport(
                url=url if isinstance(url, str) else None,
                result=self.engine.assembler.failure(error),
                state=ScanState.FAILED,
                error=error,
                duration_ms=round((time.monotonic() - started) * 1000, 2)
            )

    def status_code(self, report: ScanReport) -> int:
        """HTTP status code for a report."""
        return self.engine.assembler.status_code(report)
