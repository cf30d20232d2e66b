"""Contracts for connectivity signals and periodic scheduling."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

ReachabilityCallback = Callable[[bool], Awaitable[None] | None]
PeriodicCallback = Callable[[], Awaitable[None]]
Unsubscribe = Callable[[], None]


class ReachabilitySource(Protocol):
    """Signal telling whether the remote API is currently reachable."""

    def is_reachable(self) -> bool:
        """Return the last known reachability state."""

    def subscribe(self, callback: ReachabilityCallback) -> Unsubscribe:
        """Register a transition callback and return its unsubscribe function."""


class ScheduledJob(Protocol):
    """Handle for one periodic job."""

    def cancel(self) -> None:
        """Stop future runs of the job."""


class Scheduler(Protocol):
    """Runs async callbacks on a fixed interval."""

    def every(self, interval_seconds: float, callback: PeriodicCallback) -> ScheduledJob:
        """Run ``callback`` every ``interval_seconds`` until cancelled."""
