"""Utility helpers for Event Crawler."""

from .url_validator import validate_scan_url, is_valid_scan_url

__all__ = ['validate_scan_url', 'is_valid_scan_url']
