"""Component declaration for the SQLite local store substrate."""

from __future__ import annotations

RESOURCE_COMPONENT_ID = "substrate_sqlite"
