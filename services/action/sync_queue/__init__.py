"""Sync queue service: durable, priority-ordered replay of offline mutations."""

from services.action.sync_queue.component import SERVICE_COMPONENT_ID
from services.action.sync_queue.config import (
    ExhaustedPolicy,
    SyncQueueSettings,
    resolve_sync_queue_settings,
)
from services.action.sync_queue.domain import (
    DeadLetter,
    DrainReport,
    DrainScope,
    OperationKind,
    OperationRequest,
    Priority,
    QueuedOperation,
    QueueStats,
    ReplayResponse,
    SyncOutcome,
    SyncResult,
)
from services.action.sync_queue.implementation import (
    EXHAUSTED_EVENT,
    DefaultSyncQueueService,
)
from services.action.sync_queue.replay import HttpReplayTransport, ReplayTransport
from services.action.sync_queue.service import SyncQueueService, build_sync_queue_service
from services.action.sync_queue.triggers import SyncTriggers

__all__ = [
    "DeadLetter",
    "DefaultSyncQueueService",
    "DrainReport",
    "DrainScope",
    "EXHAUSTED_EVENT",
    "ExhaustedPolicy",
    "HttpReplayTransport",
    "OperationKind",
    "OperationRequest",
    "Priority",
    "QueueStats",
    "QueuedOperation",
    "ReplayResponse",
    "ReplayTransport",
    "SERVICE_COMPONENT_ID",
    "SyncOutcome",
    "SyncQueueService",
    "SyncResult",
    "SyncTriggers",
    "build_sync_queue_service",
    "resolve_sync_queue_settings",
]
