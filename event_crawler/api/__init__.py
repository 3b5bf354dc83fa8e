"""REST API for Event Crawler."""
