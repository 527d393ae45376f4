"""CLI interface facades for leadbridge.

This package is the home for all Click commands. ``leadbridge`` (installed as
a console script) and ``python -m leadbridge.interfaces.cli`` both invoke the
``cli`` group.
"""

from .__main__ import cli
from .job import job
from .pull import pull
from .serve import serve

__all__ = ["cli", "job", "pull", "serve"]
