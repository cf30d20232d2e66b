"""Offline security service: at-rest encryption, access gating and audit logs."""

from services.state.offline_security.component import SERVICE_COMPONENT_ID
from services.state.offline_security.config import (
    KeySource,
    OfflineSecuritySettings,
    resolve_offline_security_settings,
)
from services.state.offline_security.domain import (
    ActivitySource,
    SecurityConfigSnapshot,
    SecurityLogEntry,
)
from services.state.offline_security.implementation import DefaultOfflineSecurityService
from services.state.offline_security.service import (
    OfflineSecurityService,
    build_offline_security_service,
)

__all__ = [
    "ActivitySource",
    "DefaultOfflineSecurityService",
    "KeySource",
    "OfflineSecurityService",
    "OfflineSecuritySettings",
    "SERVICE_COMPONENT_ID",
    "SecurityConfigSnapshot",
    "SecurityLogEntry",
    "build_offline_security_service",
    "resolve_offline_security_settings",
]
