"""Scan engine coordinating the capture components for one request.

This module provides the ScanEngine class, which runs the per-request state
machine::

    IDLE -> VALIDATING -> LAUNCHING -> INJECTING -> NAVIGATING
         -> SETTLING -> EXTRACTING -> DONE

with FAILED reachable from any non-terminal state. Every scan gets its own
browser process and context, released on every exit path including
cancellation. The engine holds configuration only, so one instance can serve
concurrent scans.
"""

import logging
import time
from typing import Optional, Type

from .assembler import ResponseAssembler
from .browser_factory import BrowserFactory, BrowserConfig
from ..errors import InvalidURLError, ScanError
from .instrumentation import (
    InstrumentationController,
    DEFAULT_QUEUE_NAME,
    DEFAULT_FUNCTION_NAME,
    DEFAULT_BUFFER_NAME,
)
from .page_session import PageSession, PageSessionConfig, WaitStrategy
from ..models.scan import ScanReport, ScanState

logger = logging.getLogger(__name__)


class ScanEngineConfig:
    """Configuration for the scan engine."""

    def __init__(
        self,
        browser_config: Optional[BrowserConfig] = None,
        wait_strategy: str = WaitStrategy.NETWORKIDLE,
        navigation_timeout_ms: int = 30000,
        settle_ms: int = 3000,
        extraction_timeout_ms: int = 10000,
        request_deadline_s: float = 60.0,
        queue_name: str = DEFAULT_QUEUE_NAME,
        function_name: str = DEFAULT_FUNCTION_NAME,
        buffer_name: str = DEFAULT_BUFFER_NAME,
        max_payload_depth: int = 10,
    ):
        """Initialize scan engine configuration.

        Args:
            browser_config: Browser launch and context configuration
            wait_strategy: Load state that marks navigation complete
            navigation_timeout_ms: Upper bound for navigation
            settle_ms: Settle window after navigation
            extraction_timeout_ms: Upper bound for reading the buffer
            request_deadline_s: Overall per-request deadline enforced by callers
            queue_name: Global name of the tag-management queue
            function_name: Global name of the direct analytics function
            buffer_name: Global name of the in-page capture buffer
            max_payload_depth: Nesting depth kept when cloning payloads
        """
        if request_deadline_s <= 0:
            raise ValueError("request_deadline_s must be positive")

        self.browser_config = browser_config or BrowserConfig()
        self.wait_strategy = wait_strategy
        self.navigation_timeout_ms = navigation_timeout_ms
        self.settle_ms = settle_ms
        self.extraction_timeout_ms = extraction_timeout_ms
        self.request_deadline_s = request_deadline_s
        self.queue_name = queue_name
        self.function_name = function_name
        self.buffer_name = buffer_name
        self.max_payload_depth = max_payload_depth

    def create_page_session_config(self, **overrides) -> PageSessionConfig:
        """Create page session config with defaults and overrides.

        Args:
            **overrides: Configuration overrides

        Returns:
            PageSessionConfig instance
        """
        config_params = {
            'wait_strategy': self.wait_strategy,
            'navigation_timeout_ms': self.navigation_timeout_ms,
            'settle_ms': self.settle_ms,
            'extraction_timeout_ms': self.extraction_timeout_ms,
        }
        config_params.update(overrides)
        return PageSessionConfig(**config_params)

    def create_instrumentation(self) -> InstrumentationController:
        """Create a fresh instrumentation controller for one session."""
        return InstrumentationController(
            queue_name=self.queue_name,
            function_name=self.function_name,
            buffer_name=self.buffer_name,
            max_payload_depth=self.max_payload_depth,
        )


class ScanEngine:
    """Runs isolated, instrumented page scans."""

    def __init__(
        self,
        config: Optional[ScanEngineConfig] = None,
        factory_class: Type[BrowserFactory] = BrowserFactory,
        assembler: Optional[ResponseAssembler] = None,
    ):
        """Initialize scan engine.

        Args:
            config: Engine configuration (uses defaults if None)
            factory_class: Browser factory type, one instance per scan
            assembler: Response assembler
        """
        self.config = config or ScanEngineConfig()
        self.factory_class = factory_class
        self.assembler = assembler or ResponseAssembler()

    async def scan(self, url, **session_overrides) -> ScanReport:
        """Scan a page and report the captured events.

        Input validation happens before any browser is launched. All other
        failures are translated into the failure shape of the result; the
        browser session is released before this method returns or raises.
        Cancellation propagates after release.

        Args:
            url: Requested page URL (unvalidated)
            **session_overrides: Page session configuration overrides

        Returns:
            ScanReport for the request
        """
        started = time.monotonic()
        tracker = _StateTracker()

        tracker.set(ScanState.VALIDATING)
        try:
            target = self.assembler.validate(url)
        except InvalidURLError as e:
            logger.info(f"Rejected scan request: {e}")
            tracker.set(ScanState.FAILED)
            return ScanReport(
                url=url if isinstance(url, str) else None,
                result=self.assembler.failure(e),
                state=tracker.state,
                error=e,
                duration_ms=_elapsed_ms(started)
            )

        page_config = self.config.create_page_session_config(**session_overrides)
        page_session: Optional[PageSession] = None

        logger.info(f"Starting event scan: {target}")

        try:
            tracker.set(ScanState.LAUNCHING)
            factory = self.factory_class(self.config.browser_config)

            async with factory.session() as session:
                page_session = PageSession(
                    session.page,
                    page_config,
                    self.config.create_instrumentation()
                )
                page_session.add_state_listener(tracker.set)
                events = await page_session.capture(target)

            result = self.assembler.success(events)
            error = None
            logger.info(f"Scan completed for {target}: {result.message}")

        except ScanError as e:
            tracker.set(ScanState.FAILED)
            logger.error(f"Scan failed for {target} ({self.assembler.describe(e)}): {e}")
            result = self.assembler.failure(e)
            error = e

        except Exception as e:
            tracker.set(ScanState.FAILED)
            logger.error(f"Unexpected error scanning {target}: {e}", exc_info=True)
            result = self.assembler.failure(e)
            error = e

        except BaseException:
            tracker.set(ScanState.FAILED)
            logger.warning(f"Scan cancelled for {target}")
            raise

        return ScanReport(
            url=target,
            result=result,
            state=tracker.state,
            error=error,
            navigation_timeout=page_session.navigation_timeout if page_session else None,
            duration_ms=_elapsed_ms(started)
        )


class _StateTracker:
    """Last state reached by a scan."""

    def __init__(self):
        self.state = ScanState.IDLE

    def set(self, state: ScanState) -> None:
        if self.state.is_terminal and state is not ScanState.FAILED:
            return
        self.state = state


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)


def create_scan_engine(
    settle_ms: int = 3000,
    navigation_timeout_ms: int = 30000,
    headless: bool = True,
    **kwargs
) -> ScanEngine:
    """Create a scan engine with simple configuration.

    Args:
        settle_ms: Settle window after navigation
        navigation_timeout_ms: Upper bound for navigation
        headless: Run browser in headless mode
        **kwargs: Additional ScanEngineConfig options

    Returns:
        Configured ScanEngine instance
    """
    config = ScanEngineConfig(
        browser_config=BrowserConfig(headless=headless),
        settle_ms=settle_ms,
        navigation_timeout_ms=navigation_timeout_ms,
        **kwargs
    )
    return ScanEngine(config)
