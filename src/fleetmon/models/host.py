"""Host model - a provisioned compute instance."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fleetmon.models.enums import HostStatus


class Host(BaseModel):
    """A compute host tracked through provisioning, running and termination."""

    id: str
    host_name: str = ""
    distro_id: str
    provider: str = ""
    status: HostStatus = HostStatus.UNPROVISIONED

    # Ownership: spawn hosts are started by users rather than the scheduler
    started_by: str = ""
    user_host: bool = False

    # Timestamps
    creation_time: datetime
    provision_time: Optional[datetime] = None
    expiration_time: Optional[datetime] = None
    termination_time: Optional[datetime] = None
    last_task_completed_time: Optional[datetime] = None
    last_reachability_check: Optional[datetime] = None

    running_task: Optional[str] = None

    # Warning key -> sent
    notifications: dict[str, bool] = Field(default_factory=dict)

    def is_free(self) -> bool:
        """Whether the host is not currently running a task."""
        return not self.running_task

    def idle_since(self) -> datetime:
        """When the host last had nothing to do."""
        return self.last_task_completed_time or self.provision_time or self.creation_time

    def notification_sent(self, key: str) -> bool:
        return bool(self.notifications.get(key))
