"""End-to-end capture tests against a real browser.

Pages are served from a local aiohttp server; each test drives the full
scan pipeline (launch, injection, navigation, settle, extraction).
"""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from event_crawler.capture.browser_factory import BrowserFactory, BrowserConfig
from event_crawler.capture.engine import ScanEngine, ScanEngineConfig
from event_crawler.errors import BrowserEnvironmentError


pytestmark = pytest.mark.integration


PAGES = {
    "plain": """
        <html><body><p>No analytics here</p></body></html>
    """,
    "push": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            dataLayer.push({event: 'purchase', value: 42, items: [{sku: 'A1'}]});
        </script></head><body></body></html>
    """,
    "gtag_declared": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            function gtag(){dataLayer.push(arguments);}
            gtag('js', new Date());
            gtag('config', 'G-TEST');
            gtag('event', 'click', {label: 'x'});
        </script></head><body></body></html>
    """,
    "gtag_assigned": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            window.gtag = function(){ dataLayer.push(arguments); };
            gtag('event', 'sign_up', {method: 'email'});
        </script></head><body></body></html>
    """,
    "gtag_undefined": """
        <html><head><script>
            gtag('event', 'stubbed', {source: 'stub'});
        </script></head><body></body></html>
    """,
    "deferred": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            setTimeout(function () { dataLayer.push({event: 'late'}); }, 200);
        </script></head><body></body></html>
    """,
    "ordered": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            dataLayer.push({event: 'first'});
            dataLayer.push({event: 'second'});
            setTimeout(function () { dataLayer.push({event: 'third'}); }, 50);
        </script></head><body></body></html>
    """,
    "pass_through": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            var returned = dataLayer.push({event: 'first'});
            window.gtag = function () { return 'original'; };
            var gtagResult = gtag('event', 'ping');
            dataLayer.push({event: 'check', returned: returned, length: dataLayer.length, gtagResult: gtagResult});
        </script></head><body></body></html>
    """,
    "awkward_payloads": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            dataLayer.push(function () {});
            dataLayer.push('just a string');
            var cyclic = {event: 'cyclic'};
            cyclic.self = cyclic;
            dataLayer.push(cyclic);
            dataLayer.push({event: 'dom', target: document.documentElement});
            dataLayer.push({value: 1});
        </script></head><body></body></html>
    """,
    "empty_push": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            var length = dataLayer.push();
            dataLayer.push({event: 'after_empty', length: length});
        </script></head><body></body></html>
    """,
    "focused_form": """
        <html><body>
            <form id="signup" tabindex="-1"><input name="id"></form>
            <script>
                window.dataLayer = window.dataLayer || [];
                document.getElementById('signup').focus();
                dataLayer.push({event: 'form_focus'});
            </script>
        </body></html>
    """,
    "focused": """
        <html><body>
            <input id="email" type="email">
            <script>
                window.dataLayer = window.dataLayer || [];
                document.getElementById('email').focus();
                dataLayer.push({event: 'focus_check'});
            </script>
        </body></html>
    """,
    "a": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            dataLayer.push({event: 'from_a'});
        </script></head><body></body></html>
    """,
    "b": """
        <html><head><script>
            window.dataLayer = window.dataLayer || [];
            dataLayer.push({event: 'from_b'});
        </script></head><body></body></html>
    """,
}


async def _serve_page(request):
    name = request.match_info["name"]
    if name not in PAGES:
        raise web.HTTPNotFound()
    return web.Response(text=PAGES[name], content_type="text/html")


@pytest_asyncio.fixture
async def page_server():
    """Serve the test pages over HTTP."""
    app = web.Application()
    app.router.add_get("/{name}", _serve_page)
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest_asyncio.fixture
async def browser_available():
    """Skip when no browser binary is installed."""
    factory = BrowserFactory(BrowserConfig(headless=True))
    try:
        await factory.start()
    except BrowserEnvironmentError as e:
        pytest.skip(f"Browser not available: {e}")
    finally:
        await factory.stop()


@pytest.fixture
def engine(browser_available):
    """Engine with a short settle window."""
    return ScanEngine(ScanEngineConfig(settle_ms=1000, navigation_timeout_ms=10000))


def _url(server, name):
    return str(server.make_url(f"/{name}"))


def _names(report):
    return [e.event_name for e in report.result.events]


class TestLiveCapture:
    """Full pipeline tests against served pages."""

    @pytest.mark.asyncio
    async def test_page_without_analytics(self, engine, page_server):
        """Test that a page with no emissions is a successful empty scan."""
        report = await engine.scan(_url(page_server, "plain"))

        assert report.succeeded
        assert report.result.events == []
        assert report.result.message == "Captured 0 event(s)"

    @pytest.mark.asyncio
    async def test_queue_push(self, engine, page_server):
        """Test that a queue push is captured with its payload."""
        report = await engine.scan(_url(page_server, "push"))

        assert _names(report) == ["purchase"]
        event = report.result.events[0]
        assert event.payload == {"event": "purchase", "value": 42, "items": [{"sku": "A1"}]}
        assert event.timestamp > 0

    @pytest.mark.asyncio
    async def test_declared_gtag_recorded_once(self, engine, page_server):
        """Test the canonical snippet yields exactly one event per event call."""
        report = await engine.scan(_url(page_server, "gtag_declared"))

        assert _names(report) == ["click"]
        assert report.result.events[0].payload == {"label": "x"}

    @pytest.mark.asyncio
    async def test_assigned_gtag_recorded_once(self, engine, page_server):
        """Test that a function assigned after injection is wrapped."""
        report = await engine.scan(_url(page_server, "gtag_assigned"))

        assert _names(report) == ["sign_up"]
        assert report.result.events[0].payload == {"method": "email"}

    @pytest.mark.asyncio
    async def test_gtag_called_without_definition(self, engine, page_server):
        """Test that a page calling an undefined function still works."""
        report = await engine.scan(_url(page_server, "gtag_undefined"))

        assert report.succeeded
        assert _names(report) == ["stubbed"]

    @pytest.mark.asyncio
    async def test_deferred_emission_within_settle(self, engine, page_server):
        """Test that emissions during the settle window are captured."""
        report = await engine.scan(_url(page_server, "deferred"))

        assert _names(report) == ["late"]

    @pytest.mark.asyncio
    async def test_capture_order(self, engine, page_server):
        """Test that events keep firing order with non-decreasing timestamps."""
        report = await engine.scan(_url(page_server, "ordered"))

        assert _names(report) == ["first", "second", "third"]
        timestamps = [e.timestamp for e in report.result.events]
        assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_hooks_pass_through(self, engine, page_server):
        """Test that the page sees the original return values and queue state."""
        report = await engine.scan(_url(page_server, "pass_through"))

        assert _names(report) == ["first", "ping", "check"]
        check = report.result.events[2].payload
        assert check["returned"] == 1
        assert check["length"] == 1
        assert check["gtagResult"] == "original"

    @pytest.mark.asyncio
    async def test_awkward_payloads(self, engine, page_server):
        """Test that every push is recorded and odd payloads are made safe."""
        report = await engine.scan(_url(page_server, "awkward_payloads"))

        assert _names(report) == ["unnamed", "unnamed", "cyclic", "dom", "unnamed"]
        function, text, cyclic, dom, unnamed = report.result.events
        assert function.payload == {}
        assert text.payload == {"value": "just a string"}
        assert cyclic.payload["self"] == "[Circular]"
        assert dom.payload["target"] == "[HTML]"
        assert unnamed.payload == {"value": 1}

    @pytest.mark.asyncio
    async def test_empty_push(self, engine, page_server):
        """Test that a push without arguments is one unnamed event."""
        report = await engine.scan(_url(page_server, "empty_push"))

        assert _names(report) == ["unnamed", "after_empty"]
        empty, after = report.result.events
        assert empty.payload == {}
        assert after.payload["length"] == 0

    @pytest.mark.asyncio
    async def test_selector_ignores_shadowing_control(self, engine, page_server):
        """Test that a form control named 'id' does not replace the form's id."""
        report = await engine.scan(_url(page_server, "focused_form"))

        assert _names(report) == ["form_focus"]
        assert report.result.events[0].selector in ("signup", None)

    @pytest.mark.asyncio
    async def test_selector_best_effort(self, engine, page_server):
        """Test that the focused element id is attached when available."""
        report = await engine.scan(_url(page_server, "focused"))

        assert _names(report) == ["focus_check"]
        assert report.result.events[0].selector in ("email", None)

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_concurrent_scans_isolated(self, engine, page_server):
        """Test that concurrent scans never see each other's events."""
        report_a, report_b = await asyncio.gather(
            engine.scan(_url(page_server, "a")),
            engine.scan(_url(page_server, "b")),
        )

        assert _names(report_a) == ["from_a"]
        assert _names(report_b) == ["from_b"]

    @pytest.mark.asyncio
    async def test_unreachable_host_is_best_effort(self, engine):
        """Test that a failed navigation still completes with what was captured."""
        report = await engine.scan("http://127.0.0.1:9/")

        assert report.succeeded
        assert report.result.events == []
