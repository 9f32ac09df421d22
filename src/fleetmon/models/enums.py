"""fleetmon enumerations."""

from enum import Enum


class HostStatus(str, Enum):
    """Host lifecycle status."""

    UNPROVISIONED = "unprovisioned"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    DECOMMISSIONED = "decommissioned"
    TERMINATED = "terminated"
    PROVISION_FAILED = "provision_failed"

    @classmethod
    def starting_states(cls) -> set["HostStatus"]:
        """States of a host that has not become ready yet."""
        return {cls.UNPROVISIONED, cls.PROVISIONING}

    @classmethod
    def live_states(cls) -> set["HostStatus"]:
        """States of a host that still holds cloud resources."""
        return {
            cls.UNPROVISIONED,
            cls.PROVISIONING,
            cls.RUNNING,
            cls.DECOMMISSIONED,
            cls.PROVISION_FAILED,
        }


class TaskStatus(str, Enum):
    """Task lifecycle status."""

    UNDISPATCHED = "undispatched"
    DISPATCHED = "dispatched"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def in_progress_states(cls) -> set["TaskStatus"]:
        """States in which a task is expected to send heartbeats."""
        return {cls.DISPATCHED, cls.RUNNING}


class ResourceType(str, Enum):
    """Kinds of resources the audit log records events for."""

    HOST = "HOST"


class EventType(str, Enum):
    """Kinds of recorded lifecycle transitions."""

    HOST_CREATED = "HOST_CREATED"
    HOST_STATUS_CHANGED = "HOST_STATUS_CHANGED"
    HOST_DNS_NAME_SET = "HOST_DNS_NAME_SET"
    HOST_PROVISIONED = "HOST_PROVISIONED"
    HOST_PROVISION_FAILED = "HOST_PROVISION_FAILED"
    HOST_RUNNING_TASK_SET = "HOST_RUNNING_TASK_SET"
    HOST_RUNNING_TASK_CLEARED = "HOST_RUNNING_TASK_CLEARED"
    HOST_TASK_PID_SET = "HOST_TASK_PID_SET"
    HOST_MONITOR_FLAG = "HOST_MONITOR_FLAG"


class CleanupAction(str, Enum):
    """Terminal actions the provisioner can apply to a host."""

    TERMINATE = "terminate"
    DECOMMISSION = "decommission"

    @property
    def target_status(self) -> HostStatus:
        if self is CleanupAction.DECOMMISSION:
            return HostStatus.DECOMMISSIONED
        return HostStatus.TERMINATED


class NotificationKind(str, Enum):
    """Kinds of operator notifications."""

    SPAWN_HOST_EXPIRATION = "spawn_host_expiration"
    SLOW_PROVISIONING = "slow_provisioning"
