"""Component declaration for the advisory flag store adapter."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "adapter_flags"
