"""Instrumented event capture for Event Crawler.

This package drives a headless browser to a page, records every analytics
emission the page makes through its tag-management queue and its direct
analytics function, and returns the events in capture order.

Main Components:
- Browser Factory: isolated browser session per scan
- Instrumentation: pre-navigation interception hooks
- Page Session: navigation, wait strategy and settle window
- Event Extractor: single read of the in-page capture buffer
- Response Assembler: input validation and uniform results
- Scan Engine: per-request coordination

Usage:
    from event_crawler.capture import ScanEngine

    engine = ScanEngine()
    report = await engine.scan("https://example.com")
"""

__all__ = [
    # Main components
    "ScanEngine",
    "ScanEngineConfig",
    "BrowserFactory",
    "BrowserConfig",
    "BrowserSession",
    "InstrumentationController",
    "PageSession",
    "PageSessionConfig",
    "WaitStrategy",
    "EventExtractor",
    "ResponseAssembler",

    # Errors
    "ScanError",
    "InvalidURLError",
    "BrowserEnvironmentError",
    "NavigationTimeout",
    "ExtractionError",
    "ScanDeadlineExceeded",

    # Convenience functions
    "create_scan_engine",
    "create_browser_factory",
]

from ..errors import (
    ScanError,
    InvalidURLError,
    BrowserEnvironmentError,
    NavigationTimeout,
    ExtractionError,
    ScanDeadlineExceeded,
)

from .browser_factory import (
    BrowserFactory,
    BrowserConfig,
    BrowserSession,
    create_browser_factory,
)

from .instrumentation import InstrumentationController

from .page_session import (
    PageSession,
    PageSessionConfig,
    WaitStrategy,
)

from .extractor import EventExtractor
from .assembler import ResponseAssembler

from .engine import (
    ScanEngine,
    ScanEngineConfig,
    create_scan_engine,
)
