"""User notification adapter."""

from resources.adapters.notify.adapter import Notifier
from resources.adapters.notify.component import RESOURCE_COMPONENT_ID
from resources.adapters.notify.logging_notifier import LoggingNotifier

__all__ = ["LoggingNotifier", "Notifier", "RESOURCE_COMPONENT_ID"]
