"""Component declaration for the network reachability and scheduling adapter."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "adapter_network"
