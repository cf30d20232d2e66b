"""Advisory flag store adapter."""

from resources.adapters.flags.adapter import (
    LAST_FLUSH_ATTEMPT_AT,
    OFFLINE_STARTED_AT,
    FlagStore,
)
from resources.adapters.flags.component import RESOURCE_COMPONENT_ID
from resources.adapters.flags.flag_store import InMemoryFlagStore, JsonFileFlagStore

__all__ = [
    "FlagStore",
    "InMemoryFlagStore",
    "JsonFileFlagStore",
    "LAST_FLUSH_ATTEMPT_AT",
    "OFFLINE_STARTED_AT",
    "RESOURCE_COMPONENT_ID",
]
