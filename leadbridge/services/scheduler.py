"""Interval runner with single-flight triggering and a one-shot retry.

:class:`PullScheduler` drives the reporting server's fetch-and-store pipeline
and, through ``asyncio.to_thread``, the synchronous board jobs. A trigger that
arrives while a run is in progress is dropped. A failed run is logged,
appended to the persistent error log and retried once after
``retry_delay_seconds``; the retried run never schedules another retry.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable

from leadbridge.domain.models import iso_utcnow
from leadbridge.infrastructure.observability import get_logger
from leadbridge.infrastructure.persistence import append_error_log

Job = Callable[[], Awaitable[Any]]


class PullScheduler:
    def __init__(
        self,
        job: Job,
        *,
        name: str = "pull",
        interval_seconds: float | None = None,
        retry_delay_seconds: float = 60.0,
        error_log_path: str | Path | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._job = job
        self.name = name
        self.interval_seconds = interval_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self.error_log_path = Path(error_log_path) if error_log_path else None
        self._sleep = sleep
        self._logger = get_logger(__name__)

        self._running = False
        self._task: asyncio.Task | None = None
        self._retry_tasks: set[asyncio.Task] = set()
        self._latest_retry: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self.last_error: str | None = None
        self.last_success_at: str | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def retry_task(self) -> asyncio.Task | None:
        """The most recently scheduled retry."""
        return self._latest_retry

    @property
    def pending_retries(self) -> int:
        return len(self._retry_tasks)

    async def trigger(self) -> bool:
        """Run the job now unless a run is already in progress.

        Returns ``True`` when the job ran and succeeded.
        """
        return await self._run(allow_retry=True)

    async def _run(self, *, allow_retry: bool) -> bool:
        if self._running:
            self._logger.warning(
                "[skip] %s already running, next in %s", self.name, self._next_label()
            )
            return False

        self._running = True
        try:
            await self._job()
        except Exception as exc:
            message = f"{self.name} failed: {exc}"
            self._logger.exception(message)
            self.last_error = str(exc)
            if self.error_log_path is not None:
                append_error_log(self.error_log_path, message)
            if allow_retry:
                task = asyncio.create_task(self._retry())
                self._retry_tasks.add(task)
                task.add_done_callback(self._retry_tasks.discard)
                self._latest_retry = task
            return False
        finally:
            self._running = False

        self.last_error = None
        self.last_success_at = iso_utcnow()
        return True

    async def _retry(self) -> None:
        self._logger.info(
            "Retrying %s in %.0fs", self.name, self.retry_delay_seconds
        )
        await self._sleep(self.retry_delay_seconds)
        if self._stop_event.is_set():
            return
        await self._run(allow_retry=False)

    def _next_label(self) -> str:
        if not self.interval_seconds:
            return "the next trigger"
        return f"{self.interval_seconds / 60:g} min"

    async def run_forever(self) -> None:
        """Trigger immediately, then every ``interval_seconds`` until stopped."""
        self._stop_event.clear()
        while not self._stop_event.is_set():
            await self.trigger()
            if not self.interval_seconds or self.interval_seconds <= 0:
                break
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
            except asyncio.TimeoutError:
                continue

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        self._stop_event.set()
        tasks = [t for t in (self._task, *self._retry_tasks) if t is not None]
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._retry_tasks.clear()
        self._latest_retry = None


__all__ = ["Job", "PullScheduler"]
