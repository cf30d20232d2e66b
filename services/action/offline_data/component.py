"""Component declaration for the offline data service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_offline_data"
