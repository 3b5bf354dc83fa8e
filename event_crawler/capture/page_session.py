"""Page session orchestration for instrumented event capture.

This module provides the PageSession class that drives a single instrumented
page through injection, navigation, the settle window and extraction, with a
configurable wait strategy. Navigation that does not reach the wait condition
within its bound is treated as complete; partial capture is preferred over
discarding a slow page's results.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from playwright.async_api import Page, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from .extractor import EventExtractor
from .instrumentation import InstrumentationController
from ..errors import NavigationTimeout
from ..models.scan import ScannedEvent, ScanState

logger = logging.getLogger(__name__)


class WaitStrategy:
    """Available wait strategies for page load completion."""
    NETWORKIDLE = "networkidle"
    LOAD = "load"
    DOMCONTENTLOADED = "domcontentloaded"

    ALL = (NETWORKIDLE, LOAD, DOMCONTENTLOADED)


class PageSessionConfig:
    """Configuration for a single page capture."""

    def __init__(
        self,
        wait_strategy: str = WaitStrategy.NETWORKIDLE,
        navigation_timeout_ms: int = 30000,
        settle_ms: int = 3000,
        extraction_timeout_ms: int = 10000,
    ):
        """Initialize page session configuration.

        Args:
            wait_strategy: Load state that marks navigation complete
            navigation_timeout_ms: Upper bound for reaching the load state
            settle_ms: Quiet period after navigation before extraction.
                Larger values admit more deferred emissions at the cost of
                latency; no value guarantees every deferred emission.
            extraction_timeout_ms: Upper bound for reading the buffer
        """
        if wait_strategy not in WaitStrategy.ALL:
            raise ValueError(f"Unknown wait strategy: {wait_strategy}")
        if navigation_timeout_ms < 0 or settle_ms < 0 or extraction_timeout_ms < 0:
            raise ValueError("Timeouts must not be negative")

        self.wait_strategy = wait_strategy
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_ms = settle_ms
        self.extraction_timeout_ms = extraction_timeout_ms


class PageSession:
    """Drives one page from injection to extraction."""

    def __init__(
        self,
        page: Page,
        config: Optional[PageSessionConfig] = None,
        instrumentation: Optional[InstrumentationController] = None,
    ):
        """Initialize page session.

        Args:
            page: Playwright page, not yet navigated
            config: Page session configuration
            instrumentation: Hook installer (defaults to dataLayer/gtag)
        """
        self.page = page
        self.config = config or PageSessionConfig()
        self.instrumentation = instrumentation or InstrumentationController()
        self.extractor = EventExtractor(
            self.instrumentation.buffer_name,
            timeout_ms=self.config.extraction_timeout_ms
        )

        self.state = ScanState.IDLE
        self.navigation_timeout: Optional[NavigationTimeout] = None
        self.navigation_error: Optional[str] = None
        self.final_url: Optional[str] = None

        self.navigation_start_time: Optional[datetime] = None
        self.load_complete_time: Optional[datetime] = None
        self._state_listeners: List[Callable[[ScanState], None]] = []

    @property
    def navigation_timed_out(self) -> bool:
        return self.navigation_timeout is not None

    def add_state_listener(self, listener: Callable[[ScanState], None]) -> None:
        """Register a callback invoked on every state transition."""
        self._state_listeners.append(listener)

    def _transition(self, state: ScanState) -> None:
        logger.debug(f"Page session state: {self.state.value} -> {state.value}")
        self.state = state
        for listener in self._state_listeners:
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Error in page session state listener: {e}")

    async def capture(self, url: str) -> List[ScannedEvent]:
        """Instrument the page, load ``url`` and return the captured events.

        Args:
            url: Validated absolute URL

        Returns:
            Captured events in capture order

        Raises:
            ExtractionError: If the buffer cannot be read
        """
        try:
            self._transition(ScanState.INJECTING)
            await self.instrumentation.install(self.page)

            self._transition(ScanState.NAVIGATING)
            await self.navigate(url)

            self._transition(ScanState.SETTLING)
            await self.settle()

            self._transition(ScanState.EXTRACTING)
            events = await self.extractor.extract(self.page)

            self._transition(ScanState.DONE)
            return events

        except BaseException:
            self._transition(ScanState.FAILED)
            raise

    async def navigate(self, url: str) -> None:
        """Load the page and wait for the configured load state.

        Timeouts and other navigation errors do not fail the capture: the
        page keeps whatever it emitted before the failure, and a page that
        is truly gone surfaces as an extraction failure.

        Args:
            url: URL to navigate to
        """
        self.navigation_start_time = datetime.utcnow()

        try:
            response = await self.page.goto(
                url,
                wait_until=self.config.wait_strategy,
                timeout=self.config.navigation_timeout_ms
            )
            if response:
                self.final_url = response.url
            logger.debug(f"Navigation completed: {url}")

        except PlaywrightTimeoutError as e:
            self.navigation_timeout = NavigationTimeout(
                f"Load wait timeout ({self.config.wait_strategy}, "
                f"{self.config.navigation_timeout_ms}ms) for {url}"
            )
            self.navigation_timeout.__cause__ = e
            logger.warning(f"{self.navigation_timeout}; continuing with partial capture")

        except PlaywrightError as e:
            self.navigation_error = str(e)
            logger.warning(f"Navigation error for {url}: {e}; continuing with partial capture")

        self.load_complete_time = datetime.utcnow()

    async def settle(self) -> None:
        """Hold the settle window so deferred emissions can fire."""
        if self.config.settle_ms <= 0:
            return
        logger.debug(f"Settling for {self.config.settle_ms}ms")
        await asyncio.sleep(self.config.settle_ms / 1000.0)

    def get_load_time_ms(self) -> Optional[float]:
        """Navigation duration in milliseconds, if navigation finished."""
        if self.navigation_start_time and self.load_complete_time:
            return (self.load_complete_time - self.navigation_start_time).total_seconds() * 1000
        return None

    def __repr__(self) -> str:
        return (
            f"PageSession(state={self.state.value}, "
            f"timed_out={self.navigation_timed_out}, load_time={self.get_load_time_ms()}ms)"
        )
