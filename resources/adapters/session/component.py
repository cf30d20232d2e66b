"""Component declaration for the session credential adapter."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "adapter_session"
