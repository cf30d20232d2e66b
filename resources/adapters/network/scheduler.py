"""Asyncio-backed periodic scheduler."""

from __future__ import annotations

import asyncio

from packages.stash_shared.logging import get_logger, log_context
from resources.adapters.network.adapter import PeriodicCallback, ScheduledJob, Scheduler

_LOGGER = get_logger(__name__)


class AsyncioJob(ScheduledJob):
    """Periodic job running as one asyncio task."""

    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()

    def cancel(self) -> None:
        self._task.cancel()


class AsyncioScheduler(Scheduler):
    """Scheduler running callbacks on the current event loop.

    A failing callback is logged and the job keeps its schedule.
    """

    def __init__(self) -> None:
        self._jobs: list[AsyncioJob] = []

    def every(self, interval_seconds: float, callback: PeriodicCallback) -> AsyncioJob:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        task = asyncio.get_running_loop().create_task(
            _run_periodically(interval_seconds, callback)
        )
        job = AsyncioJob(task)
        self._jobs.append(job)
        return job

    def cancel_all(self) -> None:
        """Cancel every job created by this scheduler."""
        for job in self._jobs:
            job.cancel()
        self._jobs.clear()


async def _run_periodically(interval_seconds: float, callback: PeriodicCallback) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            with log_context({"interval_seconds": interval_seconds}):
                _LOGGER.exception("Periodic job failed")
