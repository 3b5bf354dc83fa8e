"""Event Crawler: analytics event capture for live webpages.

Drives a headless browser to a page, intercepts tag-management queue pushes
and direct analytics calls, and returns the emitted events in order.
"""

__version__ = "1.0.0"
