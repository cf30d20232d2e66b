"""Component declaration for the user notification adapter."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "adapter_notify"
