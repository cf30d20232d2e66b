"""Component declaration for the sync queue service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_sync_queue"
