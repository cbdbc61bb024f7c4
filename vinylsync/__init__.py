"""
vinylsync package initializer.

This package mirrors a user's Discogs record collection into a local,
time-bound cache: it fetches the paginated collection, enriches every release
with detail and master data, normalizes it into stable records and persists
the result.

The package exposes a ``__version__`` attribute indicating the installed
version of vinylsync. The version is read from pyproject.toml via
importlib.metadata; this is the single source of truth.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vinylsync")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
