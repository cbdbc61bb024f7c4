"""CLI interface facades for vinylsync.

This package is the canonical home for all Click commands.
"""

from .__main__ import cli, main
from .cache import clear, export, import_, status
from .connection import test_connection
from .sync import sync

__all__ = [
    "clear",
    "cli",
    "export",
    "import_",
    "main",
    "status",
    "sync",
    "test_connection",
]
