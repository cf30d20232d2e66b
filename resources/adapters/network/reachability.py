"""Programmatic reachability source driven by the host application."""

from __future__ import annotations

import inspect

from packages.stash_shared.logging import get_logger, log_context
from resources.adapters.network.adapter import (
    ReachabilityCallback,
    ReachabilitySource,
    Unsubscribe,
)

_LOGGER = get_logger(__name__)


class ManualReachability(ReachabilitySource):
    """Reachability flag set by the host from platform connectivity events.

    Subscribers are notified only on transitions, in subscription order.
    Async callbacks are awaited before ``set_reachable`` returns.
    """

    def __init__(self, *, reachable: bool = True) -> None:
        self._reachable = reachable
        self._callbacks: list[ReachabilityCallback] = []

    def is_reachable(self) -> bool:
        return self._reachable

    def subscribe(self, callback: ReachabilityCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def set_reachable(self, reachable: bool) -> None:
        """Record a new state and notify subscribers when it changed."""
        if reachable == self._reachable:
            return
        self._reachable = reachable
        with log_context({"reachable": reachable}):
            _LOGGER.info("Network reachability changed")

        for callback in list(self._callbacks):
            try:
                result = callback(reachable)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Reachability subscriber failed")
