"""fleetmon data models."""

from fleetmon.models.enums import (
    CleanupAction,
    EventType,
    HostStatus,
    NotificationKind,
    ResourceType,
    TaskStatus,
)
from fleetmon.models.distro import Distro
from fleetmon.models.event import Event, HostEventData
from fleetmon.models.host import Host
from fleetmon.models.notification import Notification
from fleetmon.models.project import Project, ProjectRef
from fleetmon.models.task import Task, TaskFailureDetails

__all__ = [
    "CleanupAction",
    "Distro",
    "Event",
    "EventType",
    "Host",
    "HostEventData",
    "HostStatus",
    "Notification",
    "NotificationKind",
    "Project",
    "ProjectRef",
    "ResourceType",
    "Task",
    "TaskFailureDetails",
    "TaskStatus",
]
