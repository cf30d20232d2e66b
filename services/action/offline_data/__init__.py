"""Offline data service: the user-facing facade over cache, queue and security."""

from services.action.offline_data.component import SERVICE_COMPONENT_ID
from services.action.offline_data.config import (
    MergePolicyName,
    OfflineDataSettings,
    resolve_offline_data_settings,
)
from services.action.offline_data.domain import (
    CachedUserRecord,
    ExportBundle,
    ExportInfo,
    OfflineMetrics,
    OfflineUpdate,
    RecordSection,
    RemoteUserSnapshot,
)
from services.action.offline_data.implementation import (
    CLEARED_EVENT,
    EXPORTED_EVENT,
    SYNCED_EVENT,
    UPDATED_EVENT,
    DefaultOfflineDataService,
)
from services.action.offline_data.merge import (
    LastWriteWinsPolicy,
    MergePolicy,
    ShallowMergePolicy,
    build_merge_policy,
)
from services.action.offline_data.service import (
    OfflineDataService,
    build_offline_data_service,
)
from services.action.offline_data.source import HttpUserSource, UserSource

__all__ = [
    "CLEARED_EVENT",
    "CachedUserRecord",
    "DefaultOfflineDataService",
    "EXPORTED_EVENT",
    "ExportBundle",
    "ExportInfo",
    "HttpUserSource",
    "LastWriteWinsPolicy",
    "MergePolicy",
    "MergePolicyName",
    "OfflineDataService",
    "OfflineDataSettings",
    "OfflineMetrics",
    "OfflineUpdate",
    "RecordSection",
    "RemoteUserSnapshot",
    "SERVICE_COMPONENT_ID",
    "SYNCED_EVENT",
    "ShallowMergePolicy",
    "UPDATED_EVENT",
    "UserSource",
    "build_merge_policy",
    "build_offline_data_service",
    "resolve_offline_data_settings",
]
