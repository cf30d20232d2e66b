"""Contract for user-visible notifications raised by offline operations."""

from __future__ import annotations

from typing import Protocol


class Notifier(Protocol):
    """Surface short messages to the user (toasts, banners, CLI output)."""

    def info(self, message: str) -> None:
        """Report neutral progress."""

    def success(self, message: str) -> None:
        """Report a completed operation."""

    def error(self, message: str) -> None:
        """Report a failure the user should know about."""
