"""Round-robin credential selection for email lookups."""

from __future__ import annotations

from typing import Iterator

from .credentials import Credential, CredentialPool


class RoundRobinDispatcher:
    """Owns the cursor that spreads lookups across the credential pool.

    ``candidates()`` starts at the cursor and wraps around exactly once, so a
    single lookup tries each credential at most once per pass. The cursor only
    moves through :meth:`mark_success` and :meth:`advance`.
    """

    def __init__(self, pool: CredentialPool, cursor: int = 0) -> None:
        self._pool = pool
        self._cursor = cursor % len(pool) if len(pool) else 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def candidates(self) -> Iterator[tuple[int, Credential]]:
        size = len(self._pool)
        start = self._cursor
        for offset in range(size):
            index = (start + offset) % size
            yield index, self._pool[index]

    def mark_success(self, index: int) -> None:
        """Start the next lookup after the credential that just answered."""
        if len(self._pool):
            self._cursor = (index + 1) % len(self._pool)

    def advance(self) -> None:
        """Step past the current start after a fully exhausted pass."""
        if len(self._pool):
            self._cursor = (self._cursor + 1) % len(self._pool)


__all__ = ["RoundRobinDispatcher"]
