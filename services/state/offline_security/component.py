"""Component declaration for the offline security service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_offline_security"
