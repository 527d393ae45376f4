"""Application layer: settings and the reporting HTTP server.

Run the server with ``uvicorn leadbridge.app.api:app`` or ``leadbridge serve``.
"""

from . import config

__all__ = ["config"]
