"""Exception hierarchy for the scan pipeline."""


class ScanError(Exception):
    """Base class for failures of a single scan request."""
    pass


class InvalidURLError(ScanError, ValueError):
    """The requested URL is missing or malformed.

    Raised before any browser resource is acquired.
    """
    pass


class BrowserEnvironmentError(ScanError, EnvironmentError):
    """The browser runtime could not be started."""
    pass


class NavigationTimeout(ScanError):
    """The page did not reach the configured load state in time.

    Never surfaced to callers; recorded on the scan report only.
    """
    pass


class ExtractionError(ScanError):
    """The captured-event buffer could not be read from the page."""
    pass


class ScanDeadlineExceeded(ScanError):
    """The per-request deadline expired before the scan completed."""

    def __init__(self, deadline_s: float):
        self.deadline_s = deadline_s
        super().__init__(f"Scan did not complete within {deadline_s:g}s")
