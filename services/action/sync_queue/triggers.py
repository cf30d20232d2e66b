"""Reachability and periodic timer triggers for queue draining."""

from __future__ import annotations

from packages.stash_shared.clock import Clock, SystemClock, format_timestamp
from packages.stash_shared.logging import fields, get_logger, log_context
from resources.adapters.flags import LAST_FLUSH_ATTEMPT_AT, OFFLINE_STARTED_AT, FlagStore
from resources.adapters.network import (
    ReachabilitySource,
    ScheduledJob,
    Scheduler,
    Unsubscribe,
)
from services.action.sync_queue.domain import DrainReport
from services.action.sync_queue.service import SyncQueueService

_LOGGER = get_logger(__name__)


class SyncTriggers:
    """Subscribe a sync queue to connectivity changes and a periodic timer.

    Reconnecting flushes high-priority operations first, then everything.
    The timer drains only while the network is reachable.
    """

    def __init__(
        self,
        *,
        queue: SyncQueueService,
        reachability: ReachabilitySource,
        scheduler: Scheduler,
        interval_seconds: float,
        flags: FlagStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._queue = queue
        self._reachability = reachability
        self._scheduler = scheduler
        self._interval_seconds = interval_seconds
        self._flags = flags
        self._clock = clock or SystemClock()
        self._unsubscribe: Unsubscribe | None = None
        self._job: ScheduledJob | None = None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        """Subscribe to reachability and schedule the periodic drain."""
        if self.started:
            return
        self._unsubscribe = self._reachability.subscribe(self._on_reachability)
        self._job = self._scheduler.every(self._interval_seconds, self._on_tick)
        _LOGGER.info("Sync triggers started")

    def stop(self) -> None:
        """Unsubscribe and cancel the periodic drain."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._job is not None:
            self._job.cancel()
            self._job = None

    async def flush(self) -> list[DrainReport]:
        """Run the reconnect flush sequence now."""
        self._mark(LAST_FLUSH_ATTEMPT_AT)
        return [
            await self._queue.drain_high_priority_only(),
            await self._queue.drain(),
        ]

    async def _on_reachability(self, reachable: bool) -> None:
        if not reachable:
            if self._flags is not None and self._flags.get(OFFLINE_STARTED_AT) is None:
                self._mark(OFFLINE_STARTED_AT)
            return
        self._clear(OFFLINE_STARTED_AT)
        await self.flush()

    async def _on_tick(self) -> None:
        if not self._reachability.is_reachable():
            return
        self._mark(LAST_FLUSH_ATTEMPT_AT)
        await self._queue.drain()

    def _mark(self, key: str) -> None:
        if self._flags is None:
            return
        try:
            self._flags.set(key, format_timestamp(self._clock.now()))
        except Exception as exc:  # noqa: BLE001
            _log_flag_failure(key, exc)

    def _clear(self, key: str) -> None:
        if self._flags is None:
            return
        try:
            self._flags.delete(key)
        except Exception as exc:  # noqa: BLE001
            _log_flag_failure(key, exc)


def _log_flag_failure(key: str, exc: Exception) -> None:
    with log_context({"flag": key, fields.ERRORS: [f"{type(exc).__name__}: {exc}"]}):
        _LOGGER.warning("Sync flag write failed; draining anyway")
