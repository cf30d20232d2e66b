"""Network reachability and periodic scheduling adapter."""

from resources.adapters.network.adapter import (
    PeriodicCallback,
    ReachabilityCallback,
    ReachabilitySource,
    ScheduledJob,
    Scheduler,
    Unsubscribe,
)
from resources.adapters.network.component import RESOURCE_COMPONENT_ID
from resources.adapters.network.reachability import ManualReachability
from resources.adapters.network.scheduler import AsyncioJob, AsyncioScheduler

__all__ = [
    "AsyncioJob",
    "AsyncioScheduler",
    "ManualReachability",
    "PeriodicCallback",
    "RESOURCE_COMPONENT_ID",
    "ReachabilityCallback",
    "ReachabilitySource",
    "ScheduledJob",
    "Scheduler",
    "Unsubscribe",
]
