"""Shared test fixtures and configuration for Event Crawler tests."""

import pytest
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
import sys

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from event_crawler.capture.engine import ScanEngine, ScanEngineConfig
from event_crawler.capture.page_session import PageSessionConfig


@pytest.fixture
def sample_raw_events():
    """Buffer records as the init script produces them."""
    return [
        {
            "eventName": "gtm.js",
            "timestamp": 1705312200000,
            "payload": {"event": "gtm.js", "gtm.start": 1705312199990},
        },
        {
            "eventName": "purchase",
            "timestamp": 1705312200150,
            "payload": {"event": "purchase", "value": 42},
            "selector": "checkout-button",
        },
        {
            "eventName": "click",
            "timestamp": 1705312200150,
            "payload": {"label": "x"},
        },
    ]


@pytest.fixture
def make_page():
    """Build a mocked Playwright page returning the given buffer."""
    def _make_page(raw_events=None):
        page = AsyncMock()
        page.url = "https://example.com/"
        page.is_closed = MagicMock(return_value=False)
        page.goto.return_value = MagicMock(url="https://example.com/")
        page.evaluate.return_value = raw_events if raw_events is not None else []
        return page
    return _make_page


@pytest.fixture
def make_factory_class():
    """Build a browser factory class that hands out a prepared page.

    Each instance records whether its session was acquired and released.
    """
    def _make_factory_class(page=None, launch_error=None):
        created = []

        class FakeBrowserFactory:
            def __init__(self, config=None):
                self.config = config
                self.acquired = False
                self.released = False
                created.append(self)

            @asynccontextmanager
            async def session(self, **context_overrides):
                if launch_error is not None:
                    raise launch_error
                self.acquired = True
                try:
                    yield SimpleNamespace(page=page, context=MagicMock(), browser=MagicMock())
                finally:
                    self.released = True

        FakeBrowserFactory.created = created
        return FakeBrowserFactory

    return _make_factory_class


@pytest.fixture
def fast_engine_config():
    """Engine configuration without a settle delay."""
    return ScanEngineConfig(settle_ms=0, navigation_timeout_ms=5000)


@pytest.fixture
def fast_session_config():
    """Page session configuration without a settle delay."""
    return PageSessionConfig(settle_ms=0, navigation_timeout_ms=5000)


@pytest.fixture
def make_engine(make_page, make_factory_class, fast_engine_config):
    """Build a scan engine over a mocked page."""
    def _make_engine(raw_events=None, page=None, launch_error=None):
        page = page or make_page(raw_events)
        factory_class = make_factory_class(page=page, launch_error=launch_error)
        engine = ScanEngine(fast_engine_config, factory_class=factory_class)
        return engine, factory_class, page
    return _make_engine
