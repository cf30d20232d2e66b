"""Public API for assembling and running the Stash offline subsystem."""

from packages.stash_core.runtime import (
    OfflineRuntime,
    build_offline_runtime,
    configure_runtime_logging,
)

__all__ = [
    "OfflineRuntime",
    "build_offline_runtime",
    "configure_runtime_logging",
]
