"""Per-credential request budget for the email lookup API.

Each credential gets its own :class:`RateLimiter`. A limiter allows at most
``capacity`` request starts in any rolling ``window_seconds`` and at most one
request in flight. Callers obtain a :class:`Permit` and hold it for the
duration of the HTTP call::

    permit = limiter.try_acquire() or await limiter.acquire(timeout=5)
    if permit is None:
        ...  # try another credential
    async with permit:
        response = await client.get(url)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class Permit:
    """Right to run one request; released on ``async with`` exit."""

    def __init__(self, limiter: "RateLimiter") -> None:
        self._limiter = limiter
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._limiter._release()

    async def __aenter__(self) -> "Permit":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.release()


class RateLimiter:
    """Sliding-window quota with single-flight concurrency.

    Args:
        capacity: Maximum request starts inside any rolling window.
        window_seconds: Length of the rolling window.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        capacity: int = 60,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.capacity = capacity
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._starts: deque[float] = deque()
        self._active = False
        self._cond = asyncio.Condition()

    @property
    def active(self) -> bool:
        return self._active

    @property
    def remaining(self) -> int:
        self._prune(self._clock())
        return self.capacity - len(self._starts)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._starts and self._starts[0] <= cutoff:
            self._starts.popleft()

    def try_acquire(self) -> Permit | None:
        """Take a permit only if one is free right now."""
        now = self._clock()
        self._prune(now)
        if self._active or len(self._starts) >= self.capacity:
            return None
        self._active = True
        self._starts.append(now)
        return Permit(self)

    async def acquire(self, timeout: float | None = None) -> Permit | None:
        """Wait for a permit.

        Returns ``None`` instead of raising when ``timeout`` elapses first, so
        the caller can move on to another credential.
        """
        deadline = None if timeout is None else self._clock() + timeout
        async with self._cond:
            while True:
                now = self._clock()
                self._prune(now)
                if not self._active and len(self._starts) < self.capacity:
                    self._active = True
                    self._starts.append(now)
                    return Permit(self)

                wait_for: float | None = None
                if not self._active:
                    wait_for = self._starts[0] + self.window_seconds - now
                if deadline is not None:
                    left = deadline - now
                    if left <= 0:
                        return None
                    wait_for = left if wait_for is None else min(wait_for, left)

                if wait_for is None:
                    await self._cond.wait()
                    continue
                try:
                    await asyncio.wait_for(self._cond.wait(), timeout=max(wait_for, 0.001))
                except asyncio.TimeoutError:
                    pass

    async def _release(self) -> None:
        async with self._cond:
            self._active = False
            self._cond.notify_all()

    async def schedule(
        self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Run ``fn`` under a permit, waiting as long as needed."""
        permit = await self.acquire()
        if permit is None:
            raise RuntimeError("Rate limiter returned no permit without a timeout")
        async with permit:
            return await fn(*args, **kwargs)


__all__ = ["Permit", "RateLimiter"]
