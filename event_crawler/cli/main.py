#!/usr/bin/env python3
"""Main CLI entry point for Event Crawler using Typer.

Runs a single event scan from the command line and prints the captured
events, either as a readable listing or as the raw JSON scan result.
"""

import asyncio
import json
import logging
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from event_crawler import __version__
from event_crawler.api.services import ScanService
from event_crawler.capture.config import ScanConfigManager
from event_crawler.capture.engine import ScanEngine
from event_crawler.errors import InvalidURLError, ScanDeadlineExceeded
from event_crawler.models.scan import ScanReport


class ExitCode(IntEnum):
    """CLI exit codes for CI/CD integration."""
    SUCCESS = 0           # Scan completed (any number of events)
    SCAN_FAILED = 1       # Browser could not start or page became unusable
    CONFIG_ERROR = 3      # Invalid URL or configuration
    TIMEOUT_ERROR = 5     # Per-request deadline exceeded


app = typer.Typer(
    name="event-crawler",
    help="Event Crawler - capture the analytics events a webpage emits",
    add_completion=False,
)


@app.callback()
def main():
    """
    Event Crawler - capture the analytics events a webpage emits.

    Loads a page in a headless browser, records every dataLayer push and
    gtag event call, and prints the events in the order they fired.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"Event Crawler CLI v{__version__}")


@app.command()
def scan(
    url: Annotated[
        str,
        typer.Argument(help="Absolute http(s) URL of the page to scan")
    ],

    settle_ms: Annotated[
        Optional[int],
        typer.Option("--settle-ms", help="Quiet period after load before reading events (ms)")
    ] = None,

    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Navigation timeout in seconds")
    ] = None,

    deadline: Annotated[
        Optional[float],
        typer.Option("--deadline", help="Overall scan deadline in seconds")
    ] = None,

    headful: Annotated[
        bool,
        typer.Option("--headful", help="Run browser with GUI (for debugging)")
    ] = False,

    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to scan configuration YAML")
    ] = None,

    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the scan result as JSON")
    ] = False,

    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose output")
    ] = False,
):
    """
    Scan a page and list the analytics events it emits.

    Examples:

        # Basic scan
        event-crawler scan https://example.com

        # Give lazy-loaded tags more time and emit raw JSON
        event-crawler scan --settle-ms 8000 --json https://example.com
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if config_file and not config_file.exists():
        typer.echo(f"❌ Configuration file not found: {config_file}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    try:
        engine_config = ScanConfigManager(config_file).load_config().get_engine_config()
    except Exception as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    if headful:
        engine_config.browser_config.headless = False

    session_overrides = {}
    if settle_ms is not None:
        session_overrides['settle_ms'] = settle_ms
    if timeout is not None:
        session_overrides['navigation_timeout_ms'] = int(timeout * 1000)

    try:
        service = ScanService(ScanEngine(engine_config), deadline_s=deadline)
        report = asyncio.run(service.scan(url, **session_overrides))
    except ValueError as e:
        typer.echo(f"❌ Invalid option: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    if json_output:
        typer.echo(json.dumps(report.result.to_wire(), indent=2))
    else:
        _print_report(report)

    raise typer.Exit(code=exit_code_for(report).value)


def exit_code_for(report: ScanReport) -> ExitCode:
    """Map a scan report to a CLI exit code."""
    if report.succeeded:
        return ExitCode.SUCCESS
    if isinstance(report.error, InvalidURLError):
        return ExitCode.CONFIG_ERROR
    if isinstance(report.error, ScanDeadlineExceeded):
        return ExitCode.TIMEOUT_ERROR
    return ExitCode.SCAN_FAILED


def _print_report(report: ScanReport) -> None:
    result = report.result
    if not result.success:
        typer.echo(f"❌ {result.error}", err=True)
        return

    typer.echo(f"✅ {result.message}")
    if report.navigation_timed_out:
        typer.echo("⚠️  Page did not finish loading in time; later events may be missing")

    for event in result.events:
        captured_at = datetime.fromtimestamp(event.timestamp / 1000).strftime('%H:%M:%S.%f')[:-3]
        selector = f" [#{event.selector}]" if event.selector else ""
        typer.echo(f"  {captured_at}  {event.event_name}{selector}")
        typer.echo(f"      {json.dumps(event.payload, sort_keys=True)}")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    app()
