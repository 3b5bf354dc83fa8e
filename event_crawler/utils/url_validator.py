"""URL validation for inbound scan requests.

A scan target must be an absolute http(s) URL with a host. Validation runs
before any browser resource is acquired, so a rejected URL never launches a
browser.
"""

import re
from typing import Any
from urllib.parse import urlparse

from ..errors import InvalidURLError


MISSING_URL_MESSAGE = "URL is required"
INVALID_URL_MESSAGE = "Invalid URL format"

_ALLOWED_SCHEMES = ('http', 'https')
_WHITESPACE = re.compile(r'\s')


def validate_scan_url(url: Any) -> str:
    """Validate a scan target URL and return it trimmed.

    Args:
        url: Raw URL value from the request

    Returns:
        The URL with surrounding whitespace removed

    Raises:
        InvalidURLError: If the URL is missing or not an absolute http(s) URL

    Example:
        >>> validate_scan_url("  https://example.com/shop  ")
        'https://example.com/shop'
    """
    if url is None:
        raise InvalidURLError(MISSING_URL_MESSAGE)
    if not isinstance(url, str):
        raise InvalidURLError(INVALID_URL_MESSAGE)

    url = url.strip()
    if not url:
        raise InvalidURLError(MISSING_URL_MESSAGE)

    if _WHITESPACE.search(url):
        raise InvalidURLError(INVALID_URL_MESSAGE)

    try:
        parsed = urlparse(url)
        # Accessing .port validates the port component
        parsed.port
    except ValueError as e:
        raise InvalidURLError(INVALID_URL_MESSAGE) from e

    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidURLError(INVALID_URL_MESSAGE)
    if not parsed.hostname:
        raise InvalidURLError(INVALID_URL_MESSAGE)

    return url


def is_valid_scan_url(url: Any) -> bool:
    """Check whether a value is an acceptable scan target URL."""
    try:
        validate_scan_url(url)
        return True
    except InvalidURLError:
        return False
