"""Browser factory for acquiring and releasing isolated Playwright sessions.

This module provides the BrowserFactory class that owns one Playwright driver
and one browser process per scan. Each scan receives a fresh browser context
(no shared cookies, storage or cache) with a single page, and the whole stack
is torn down when the session scope exits, whichever way it exits.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional, Any, AsyncGenerator

from playwright.async_api import (
    Browser,
    BrowserContext,
    Playwright,
    async_playwright,
    Page
)

from ..errors import BrowserEnvironmentError

logger = logging.getLogger(__name__)


class BrowserEngineType:
    """Supported browser engine types."""
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class BrowserConfig:
    """Configuration for browser launch and context setup."""

    def __init__(
        self,
        engine: str = BrowserEngineType.CHROMIUM,
        headless: bool = True,
        slow_mo: int = 0,
        viewport: Optional[Dict[str, int]] = None,
        user_agent: Optional[str] = None,
        extra_headers: Optional[Dict[str, str]] = None,
        ignore_https_errors: bool = False,
        timezone: Optional[str] = None,
        locale: Optional[str] = None,
        **kwargs
    ):
        """Initialize browser configuration.

        Args:
            engine: Browser engine to use (chromium, firefox, webkit)
            headless: Run browser in headless mode
            slow_mo: Slow down operations by specified milliseconds
            viewport: Viewport size dict with 'width' and 'height'
            user_agent: Custom User-Agent string
            extra_headers: Additional HTTP headers for all requests
            ignore_https_errors: Ignore SSL/TLS certificate errors
            timezone: Timezone ID (e.g., 'America/New_York')
            locale: Locale for the browser context
            **kwargs: Extra options passed through to the browser launch
        """
        self.engine = engine
        self.headless = headless
        self.slow_mo = slow_mo
        self.viewport = viewport or {'width': 1920, 'height': 1080}
        self.user_agent = user_agent
        self.extra_headers = extra_headers or {}
        self.ignore_https_errors = ignore_https_errors
        self.timezone = timezone
        self.locale = locale
        self.extra_options = kwargs

    def to_browser_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser launch options."""
        options = {
            'headless': self.headless,
            'slow_mo': self.slow_mo,
        }
        options.update(self.extra_options)
        return options

    def to_context_options(self) -> Dict[str, Any]:
        """Convert to Playwright browser context options."""
        options = {}

        if self.viewport:
            options['viewport'] = self.viewport

        if self.user_agent:
            options['user_agent'] = self.user_agent

        if self.extra_headers:
            options['extra_http_headers'] = self.extra_headers

        if self.ignore_https_errors:
            options['ignore_https_errors'] = self.ignore_https_errors

        if self.timezone:
            options['timezone_id'] = self.timezone

        if self.locale:
            options['locale'] = self.locale

        return options


class BrowserSession:
    """A launched browser with one isolated context and a single page."""

    def __init__(self, browser: Browser, context: BrowserContext, page: Page):
        self.browser = browser
        self.context = context
        self.page = page

    def __repr__(self) -> str:
        return f"BrowserSession(page_url={self.page.url!r})"


class BrowserFactory:
    """Factory owning the Playwright driver and browser process for one scan.

    Instances are not shared between scans: ``session()`` starts the driver
    and browser on entry and stops both on exit.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        """Initialize browser factory with configuration.

        Args:
            config: Browser configuration object
        """
        self.config = config or BrowserConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None

    async def start(self) -> None:
        """Start Playwright and launch browser.

        Raises:
            BrowserEnvironmentError: If the driver or browser cannot start
        """
        if self.playwright is not None:
            logger.warning("Browser factory already started")
            return

        logger.debug(f"Starting browser factory with engine: {self.config.engine}")

        try:
            self.playwright = await async_playwright().start()

            if self.config.engine == BrowserEngineType.FIREFOX:
                browser_type = self.playwright.firefox
            elif self.config.engine == BrowserEngineType.WEBKIT:
                browser_type = self.playwright.webkit
            else:
                browser_type = self.playwright.chromium

            self.browser = await browser_type.launch(**self.config.to_browser_options())

            logger.debug(f"Browser launched (headless={self.config.headless})")

        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self.stop()
            raise BrowserEnvironmentError(f"Browser could not be started: {e}") from e

    async def stop(self) -> None:
        """Stop browser and Playwright driver.

        Each step is attempted even if a previous one fails; errors are
        logged and never raised.
        """
        if self.browser:
            try:
                await self.browser.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self.browser = None

        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.warning(f"Error stopping Playwright: {e}")
            self.playwright = None

    async def create_context(self, **context_overrides) -> BrowserContext:
        """Create a new isolated browser context.

        Args:
            **context_overrides: Override default context options

        Returns:
            New browser context

        Raises:
            RuntimeError: If browser factory not started
        """
        if not self.browser:
            raise RuntimeError("Browser factory not started. Call start() first.")

        context_options = self.config.to_context_options()
        context_options.update(context_overrides)

        return await self.browser.new_context(**context_options)

    @asynccontextmanager
    async def session(self, **context_overrides) -> AsyncGenerator[BrowserSession, None]:
        """Acquire a fresh browser, context and page for one scan.

        Release runs on every exit path, including cancellation.

        Args:
            **context_overrides: Override default context options

        Yields:
            BrowserSession with a single page

        Raises:
            BrowserEnvironmentError: If the browser cannot be started
        """
        context: Optional[BrowserContext] = None
        try:
            await self.start()
            try:
                context = await self.create_context(**context_overrides)
                page = await context.new_page()
            except Exception as e:
                raise BrowserEnvironmentError(f"Browser context could not be created: {e}") from e

            logger.debug("Browser session acquired")
            yield BrowserSession(self.browser, context, page)

        finally:
            if context is not None:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"Error closing browser context: {e}")
            await self.stop()
            logger.debug("Browser session released")

    @property
    def is_running(self) -> bool:
        """Check if the browser process is up."""
        if self.browser is None:
            return False
        try:
            return self.browser.is_connected()
        except Exception:
            return False

    def __repr__(self) -> str:
        """String representation of browser factory."""
        return (
            f"BrowserFactory(engine={self.config.engine}, "
            f"headless={self.config.headless}, "
            f"running={self.is_running})"
        )


def create_browser_factory(
    engine: str = BrowserEngineType.CHROMIUM,
    headless: bool = True,
    **kwargs
) -> BrowserFactory:
    """Create a browser factory with simple configuration.

    Args:
        engine: Browser engine to use
        headless: Run in headless mode
        **kwargs: Additional configuration options

    Returns:
        Configured BrowserFactory instance
    """
    config = BrowserConfig(engine=engine, headless=headless, **kwargs)
    return BrowserFactory(config)
