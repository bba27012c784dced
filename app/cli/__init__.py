"""CLI module for the render service.

This package provides command-line rendering of PDFs and screenshots and
a command to start the HTTP service.
"""

from .main import app, ExitCode

__all__ = [
    'app',
    'ExitCode',
]
