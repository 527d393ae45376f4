"""
leadbridge package initializer.

This package keeps CRM leads, affiliate registrations and work-tracking boards
in sync, and serves a pseudonymized registration feed over HTTP.

The package exposes a ``__version__`` attribute indicating the installed
version of leadbridge. The version is read from pyproject.toml via
importlib.metadata – this is the single source of truth.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("leadbridge")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
