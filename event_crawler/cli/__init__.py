"""Command-line interface for Event Crawler."""

from .main import app, ExitCode, exit_code_for

__all__ = [
    'app',
    'ExitCode',
    'exit_code_for',
]
