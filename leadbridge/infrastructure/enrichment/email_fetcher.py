"""Email lookup client with credential rotation and cooldown on rate limits.

:class:`EmailFetcher` resolves one CRM user id to an email address. Each
attempt runs under the chosen credential's :class:`RateLimiter`; the
:class:`RoundRobinDispatcher` decides which credential is tried first. A pass
in which every credential answered 429 triggers a cooldown governed by
:class:`CooldownPolicy` and a fresh pass; any other kind of exhaustion gives up
on the identifier for this run.
"""

from __future__ import annotations

import asyncio
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

import httpx

from leadbridge.infrastructure.observability import (
    get_logger,
    record_email_cooldown,
    record_email_lookup,
)

from .credentials import Credential
from .dispatcher import RoundRobinDispatcher

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class LookupStatus(str, Enum):
    """Outcome of one HTTP attempt against the lookup API."""

    FOUND = "found"
    ABSENT = "absent"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class LookupResult:
    status: LookupStatus
    email: str | None = None
    error: str | None = None
    http_status: int | None = None


@dataclass(frozen=True)
class CooldownPolicy:
    """How long to wait, and how often, after a fully rate-limited pass.

    The defaults retry forever with a fixed 60 second pause. ``max_retries``
    caps the number of cooldowns per identifier; ``backoff_factor`` grows the
    pause geometrically up to ``max_cooldown_seconds``; ``jitter_seconds`` adds
    a uniform random delay on top.
    """

    cooldown_seconds: float = 60.0
    max_retries: int | None = None
    backoff_factor: float = 1.0
    max_cooldown_seconds: float | None = None
    jitter_seconds: float = 0.0

    def allows_retry(self, retries_done: int) -> bool:
        return self.max_retries is None or retries_done < self.max_retries

    def delay(
        self, retries_done: int, rng: Callable[[], float] = random.random
    ) -> float:
        base = self.cooldown_seconds * (self.backoff_factor**retries_done)
        if self.max_cooldown_seconds is not None:
            base = min(base, self.max_cooldown_seconds)
        if self.jitter_seconds > 0:
            base += rng() * self.jitter_seconds
        return base


def clean_identifier(identifier: str) -> str:
    """Keep the trailing run of digits (``"raisefx-1001"`` -> ``"1001"``)."""
    return re.sub(r"^.*?(\d+)$", r"\1", identifier)


class EmailFetcher:
    """Resolve user ids to emails across a pool of rate-limited credentials."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        dispatcher: RoundRobinDispatcher,
        *,
        lookup_url: str,
        policy: CooldownPolicy | None = None,
        acquire_timeout: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._lookup_url = lookup_url
        self._policy = policy or CooldownPolicy()
        self._acquire_timeout = acquire_timeout
        self._sleep = sleep

    @property
    def dispatcher(self) -> RoundRobinDispatcher:
        return self._dispatcher

    async def lookup(self, credential: Credential, user_id: str) -> LookupResult:
        """Single HTTP attempt; the caller must already hold a permit."""
        try:
            response = await self._client.get(
                self._lookup_url,
                params={"user_id": user_id},
                headers={"Authorization": f"Bearer {credential.token}"},
            )
        except httpx.TransportError as exc:
            return LookupResult(LookupStatus.TRANSIENT, error=str(exc))

        status = response.status_code
        if status == 429:
            return LookupResult(
                LookupStatus.RATE_LIMITED, error="HTTP 429", http_status=status
            )
        if status >= 500:
            return LookupResult(
                LookupStatus.TRANSIENT, error=f"HTTP {status}", http_status=status
            )
        if not 200 <= status < 300:
            return LookupResult(
                LookupStatus.FATAL, error=f"HTTP {status}", http_status=status
            )

        try:
            payload = response.json()
        except ValueError as exc:
            return LookupResult(
                LookupStatus.FATAL,
                error=f"malformed response: {exc}",
                http_status=status,
            )
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            return LookupResult(
                LookupStatus.FATAL,
                error="malformed response: missing data list",
                http_status=status,
            )
        first = data[0] if data else None
        email = first.get("email") if isinstance(first, dict) else None
        if isinstance(email, str) and email:
            return LookupResult(LookupStatus.FOUND, email=email, http_status=status)
        return LookupResult(LookupStatus.ABSENT, http_status=status)

    async def _next_attempt(
        self, pending: list[tuple[int, Credential]], user_id: str
    ) -> tuple[int, LookupResult]:
        """Run one attempt on the first pending credential that is free now.

        Only when every pending credential is busy or out of quota does it
        wait, on the first one in dispatcher order, for up to the acquire
        timeout. The chosen credential is removed from ``pending``.
        """
        for position, (index, credential) in enumerate(pending):
            permit = credential.limiter.try_acquire()
            if permit is not None:
                del pending[position]
                async with permit:
                    return index, await self.lookup(credential, user_id)

        index, credential = pending.pop(0)
        return index, await self._attempt(credential, user_id)

    async def _attempt(self, credential: Credential, user_id: str) -> LookupResult:
        permit = await credential.limiter.acquire(timeout=self._acquire_timeout)
        if permit is None:
            return LookupResult(
                LookupStatus.RATE_LIMITED, error="local quota exhausted"
            )
        async with permit:
            return await self.lookup(credential, user_id)

    async def resolve(self, identifier: str) -> str | None:
        """Return the email for ``identifier`` or ``None`` when unavailable."""
        user_id = clean_identifier(identifier)
        cooldowns = 0
        while True:
            attempted = 0
            only_rate_limited = True
            last_error: str | None = None

            pending = list(self._dispatcher.candidates())
            while pending:
                attempted += 1
                index, result = await self._next_attempt(pending, user_id)
                record_email_lookup(result.status.value)

                if result.status is LookupStatus.FOUND:
                    self._dispatcher.mark_success(index)
                    return result.email
                if result.status is LookupStatus.ABSENT:
                    self._dispatcher.mark_success(index)
                    return None
                if result.status is LookupStatus.FATAL:
                    logger.error(
                        "Email lookup for user_id=%s failed on credential %d: %s",
                        user_id,
                        index,
                        result.error,
                    )
                    return None

                last_error = result.error
                if result.status is LookupStatus.TRANSIENT:
                    only_rate_limited = False
                    logger.warning(
                        "Email lookup for user_id=%s hit a transient error on credential %d: %s",
                        user_id,
                        index,
                        result.error,
                    )

            if attempted and only_rate_limited and self._policy.allows_retry(cooldowns):
                delay = self._policy.delay(cooldowns)
                cooldowns += 1
                record_email_cooldown()
                logger.warning(
                    "All %d credentials rate-limited for %s, retrying in %.0fs",
                    attempted,
                    identifier,
                    delay,
                )
                await self._sleep(delay)
                continue

            logger.error(
                "Email lookup failed for %s: %s", identifier, last_error or "unknown"
            )
            self._dispatcher.advance()
            return None


__all__ = [
    "CooldownPolicy",
    "EmailFetcher",
    "LookupResult",
    "LookupStatus",
    "clean_identifier",
]
