"""Credential pool for the email lookup API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .rate_limiter import RateLimiter


@dataclass(frozen=True)
class Credential:
    """One API key together with the limiter that owns its quota."""

    token: str
    limiter: RateLimiter

    def __repr__(self) -> str:
        # Never print the secret itself.
        return f"Credential(token=...{self.token[-4:]})"


class CredentialPool:
    """Fixed, ordered set of credentials loaded at process start."""

    def __init__(self, credentials: Iterable[Credential]) -> None:
        self._credentials: tuple[Credential, ...] = tuple(credentials)

    @classmethod
    def from_tokens(
        cls,
        tokens: Iterable[str],
        *,
        capacity: int = 60,
        window_seconds: float = 60.0,
    ) -> "CredentialPool":
        return cls(
            Credential(token=token, limiter=RateLimiter(capacity, window_seconds))
            for token in tokens
        )

    def __len__(self) -> int:
        return len(self._credentials)

    def __getitem__(self, index: int) -> Credential:
        return self._credentials[index]

    def __iter__(self) -> Iterator[Credential]:
        return iter(self._credentials)


__all__ = ["Credential", "CredentialPool"]
