"""Extraction of the in-page capture buffer.

The EventExtractor performs one read of the buffer the instrumentation script
maintains and normalizes the records into ScannedEvent models. The buffer is
read exactly once per session; the extractor does not poll.
"""

import asyncio
import logging
from typing import Any, List

from playwright.async_api import Page
from pydantic import ValidationError

from ..errors import ExtractionError
from ..models.scan import ScannedEvent

logger = logging.getLogger(__name__)


_READ_BUFFER_SCRIPT = """
(bufferName) => {
    const buffer = window[bufferName];
    if (!buffer || !Array.isArray(buffer.events)) {
        return [];
    }
    return buffer.events.slice();
}
"""


class EventExtractor:
    """Reads the captured-event buffer from a page once."""

    def __init__(self, buffer_name: str, timeout_ms: int = 10000):
        """Initialize extractor.

        Args:
            buffer_name: Global name of the in-page capture buffer
            timeout_ms: Upper bound for the read
        """
        self.buffer_name = buffer_name
        self.timeout_ms = timeout_ms
        self._extracted = False
        self.dropped_records = 0

    @property
    def extracted(self) -> bool:
        return self._extracted

    async def extract(self, page: Page) -> List[ScannedEvent]:
        """Read and normalize the captured events.

        Args:
            page: Instrumented page after the settle window

        Returns:
            Events in capture order with non-decreasing timestamps

        Raises:
            ExtractionError: If the page cannot be read or was already read
        """
        if self._extracted:
            raise ExtractionError("Capture buffer has already been read")
        self._extracted = True

        if page.is_closed():
            raise ExtractionError("Page closed before events could be extracted")

        try:
            raw = await asyncio.wait_for(
                page.evaluate(_READ_BUFFER_SCRIPT, self.buffer_name),
                timeout=self.timeout_ms / 1000.0
            )
        except asyncio.TimeoutError as e:
            raise ExtractionError(f"Reading captured events timed out after {self.timeout_ms}ms") from e
        except Exception as e:
            logger.error(f"Failed to read captured events: {e}")
            raise ExtractionError(f"Failed to read captured events: {e}") from e

        events = self.normalize(raw)
        logger.debug(f"Extracted {len(events)} event(s)")
        return events

    def normalize(self, raw: Any) -> List[ScannedEvent]:
        """Convert raw buffer records into ScannedEvent models.

        Records that are not mappings or fail validation are dropped. The
        capture order is kept; a timestamp lower than its predecessor is
        raised to the predecessor's value.
        """
        if not isinstance(raw, list):
            logger.warning(f"Capture buffer is not a list: {type(raw).__name__}")
            return []

        events: List[ScannedEvent] = []
        last_timestamp = 0

        for index, record in enumerate(raw):
            if not isinstance(record, dict):
                self.dropped_records += 1
                logger.warning(f"Dropping non-object capture record at index {index}")
                continue

            try:
                event = ScannedEvent.model_validate(record)
            except ValidationError as e:
                self.dropped_records += 1
                logger.warning(f"Dropping invalid capture record at index {index}: {e}")
                continue

            if event.timestamp < last_timestamp:
                event.timestamp = last_timestamp
            last_timestamp = event.timestamp
            events.append(event)

        return events
