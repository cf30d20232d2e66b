"""Notifier that writes user-facing messages to the log."""

from __future__ import annotations

from packages.stash_shared.logging import get_logger, log_context
from resources.adapters.notify.adapter import Notifier

_LOGGER = get_logger(__name__)


class LoggingNotifier(Notifier):
    """Default notifier for headless hosts."""

    def info(self, message: str) -> None:
        with log_context({"notification": "info"}):
            _LOGGER.info(message)

    def success(self, message: str) -> None:
        with log_context({"notification": "success"}):
            _LOGGER.info(message)

    def error(self, message: str) -> None:
        with log_context({"notification": "error"}):
            _LOGGER.error(message)
