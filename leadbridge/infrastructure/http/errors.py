"""Exceptions raised by the upstream HTTP clients."""

from __future__ import annotations


class UpstreamError(Exception):
    """An upstream API call failed or returned an unusable response."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthenticationError(UpstreamError):
    """Raised when the affiliate API rejects the credentials or returns no token."""


class BoardAPIError(UpstreamError):
    """Raised when the board GraphQL API answers with ``errors``."""

    def __init__(self, message: str, errors: list | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


__all__ = ["AuthenticationError", "BoardAPIError", "UpstreamError"]
