"""
Command-line interface for Night Orders.
"""

from .commands import cli, load_executor, main
from .console import configure_logging, get_console

__all__ = [
    "cli",
    "load_executor",
    "main",
    "configure_logging",
    "get_console",
]
