"""Centralized version string for foursubs.

Taken from the installed distribution metadata; a source checkout that
was never installed reports the default below.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("foursubs")
except PackageNotFoundError:
    __version__ = "0.1.0"
