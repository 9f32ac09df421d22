"""Named policies evaluated by the monitoring engines.

A policy pairs a stable name (used in logs and error reports) with the
function that evaluates it. Engines receive an ordered sequence of policies
when they are constructed and evaluate them in that order.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, TypeVar

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.errors import MonitorError
from fleetmon.events import EventLog
from fleetmon.integrations.reachability import ReachabilityProber
from fleetmon.models import Distro, Host, Notification, Task

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

# Hosts to terminate or decommission
HostFlaggingFunc = Callable[[FleetStore, list[Distro], Settings, datetime], Awaitable[list[Host]]]

# Tasks to fail
TaskFlaggingFunc = Callable[[FleetStore, Settings, datetime], Awaitable[list[Task]]]

# Non-terminating checks; they report their own per-host failures
HostMonitoringFunc = Callable[
    [FleetStore, EventLog, ReachabilityProber, Settings, datetime],
    Awaitable[list[MonitorError]],
]

# Notifications waiting to be delivered
NotificationBuilderFunc = Callable[[FleetStore, Settings, datetime], Awaitable[list[Notification]]]


@dataclass(frozen=True)
class Policy(Generic[F]):
    name: str
    evaluate: F


HostFlaggingPolicy = Policy[HostFlaggingFunc]
TaskFlaggingPolicy = Policy[TaskFlaggingFunc]
HostMonitoringCheck = Policy[HostMonitoringFunc]
NotificationBuilder = Policy[NotificationBuilderFunc]
