"""Unit tests for page session orchestration."""

import asyncio

import pytest
from unittest.mock import MagicMock, patch
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from event_crawler.capture.instrumentation import InstrumentationController
from event_crawler.capture.page_session import PageSession, PageSessionConfig, WaitStrategy
from event_crawler.errors import ExtractionError, NavigationTimeout
from event_crawler.models.scan import ScanState


class TestPageSessionConfig:
    """Tests for PageSessionConfig."""

    def test_defaults(self):
        """Test default configuration values."""
        config = PageSessionConfig()

        assert config.wait_strategy == WaitStrategy.NETWORKIDLE
        assert config.navigation_timeout_ms == 30000
        assert config.settle_ms == 3000

    def test_unknown_wait_strategy(self):
        """Test that unsupported load states are rejected."""
        with pytest.raises(ValueError, match="Unknown wait strategy"):
            PageSessionConfig(wait_strategy="commit-ish")

    def test_negative_timeouts(self):
        """Test that negative bounds are rejected."""
        with pytest.raises(ValueError):
            PageSessionConfig(settle_ms=-1)


class TestPageSession:
    """Tests for PageSession."""

    @pytest.mark.asyncio
    async def test_capture_happy_path(self, make_page, fast_session_config, sample_raw_events):
        """Test full capture flow and the states it passes through."""
        page = make_page(sample_raw_events)
        session = PageSession(page, fast_session_config)
        states = []
        session.add_state_listener(states.append)

        events = await session.capture("https://example.com/")

        assert len(events) == 3
        assert states == [
            ScanState.INJECTING,
            ScanState.NAVIGATING,
            ScanState.SETTLING,
            ScanState.EXTRACTING,
            ScanState.DONE,
        ]
        assert session.state == ScanState.DONE
        assert session.final_url == "https://example.com/"
        page.goto.assert_awaited_once_with(
            "https://example.com/", wait_until="networkidle", timeout=5000
        )

    @pytest.mark.asyncio
    async def test_instrumentation_installed_before_navigation(self, make_page, fast_session_config):
        """Test that hooks are registered before the page loads."""
        page = make_page([])
        calls = MagicMock()
        page.add_init_script.side_effect = lambda **kwargs: calls("add_init_script")
        page.goto.side_effect = lambda *args, **kwargs: calls("goto")

        await PageSession(page, fast_session_config).capture("https://example.com/")

        assert [c.args[0] for c in calls.call_args_list] == ["add_init_script", "goto"]

    @pytest.mark.asyncio
    async def test_navigation_timeout_continues(self, make_page, fast_session_config, sample_raw_events):
        """Test that a slow page still yields what it emitted."""
        page = make_page(sample_raw_events)
        page.goto.side_effect = PlaywrightTimeoutError("Timeout 5000ms exceeded")
        session = PageSession(page, fast_session_config)

        events = await session.capture("https://slow.example.com/")

        assert len(events) == 3
        assert session.navigation_timed_out is True
        assert isinstance(session.navigation_timeout, NavigationTimeout)
        assert isinstance(session.navigation_timeout.__cause__, PlaywrightTimeoutError)
        assert "5000ms" in str(session.navigation_timeout)
        assert session.state == ScanState.DONE

    @pytest.mark.asyncio
    async def test_navigation_error_continues(self, make_page, fast_session_config):
        """Test that other navigation errors are best-effort as well."""
        page = make_page([{"eventName": "early", "timestamp": 1}])
        page.goto.side_effect = PlaywrightError("net::ERR_CONNECTION_RESET")
        session = PageSession(page, fast_session_config)

        events = await session.capture("https://flaky.example.com/")

        assert [e.event_name for e in events] == ["early"]
        assert session.navigation_timed_out is False
        assert "ERR_CONNECTION_RESET" in session.navigation_error

    @pytest.mark.asyncio
    async def test_extraction_failure_fails_session(self, make_page, fast_session_config):
        """Test that an unreadable page ends in FAILED."""
        page = make_page([])
        page.is_closed.return_value = True
        session = PageSession(page, fast_session_config)

        with pytest.raises(ExtractionError):
            await session.capture("https://example.com/")

        assert session.state == ScanState.FAILED

    @pytest.mark.asyncio
    async def test_uses_configured_buffer(self, make_page, fast_session_config):
        """Test that extraction reads the buffer the instrumentation installs."""
        page = make_page([])
        instrumentation = InstrumentationController(buffer_name="__customBuffer")

        await PageSession(page, fast_session_config, instrumentation).capture("https://example.com/")

        assert page.evaluate.call_args.args[1] == "__customBuffer"

    @pytest.mark.asyncio
    async def test_settle_waits_configured_time(self, make_page):
        """Test that the settle window is honoured."""
        session = PageSession(make_page([]), PageSessionConfig(settle_ms=1500))

        with patch("event_crawler.capture.page_session.asyncio.sleep") as mock_sleep:
            await session.settle()

        mock_sleep.assert_called_once_with(1.5)

    @pytest.mark.asyncio
    async def test_settle_skipped_when_zero(self, make_page, fast_session_config):
        """Test that a zero settle window does not sleep."""
        session = PageSession(make_page([]), fast_session_config)

        with patch("event_crawler.capture.page_session.asyncio.sleep") as mock_sleep:
            await session.settle()

        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancellation_marks_failed(self, make_page):
        """Test that cancellation during settle is propagated."""
        session = PageSession(make_page([]), PageSessionConfig(settle_ms=60000))
        task = asyncio.create_task(session.capture("https://example.com/"))

        while session.state != ScanState.SETTLING:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.state == ScanState.FAILED

    @pytest.mark.asyncio
    async def test_listener_errors_ignored(self, make_page, fast_session_config):
        """Test that a failing listener does not break the capture."""
        session = PageSession(make_page([]), fast_session_config)
        session.add_state_listener(MagicMock(side_effect=RuntimeError("listener")))

        events = await session.capture("https://example.com/")

        assert events == []
        assert session.state == ScanState.DONE
