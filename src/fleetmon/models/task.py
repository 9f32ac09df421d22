"""Task model - a unit of build work dispatched to a host."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from fleetmon.models.enums import TaskStatus


class TaskFailureDetails(BaseModel):
    """Why a task ended in failure."""

    type: str = ""
    description: str = ""
    timed_out: bool = False


class Task(BaseModel):
    """Build task as seen by the monitor."""

    id: str
    display_name: str = ""
    project: str = ""
    distro_id: str = ""
    host_id: Optional[str] = None
    status: TaskStatus = TaskStatus.UNDISPATCHED
    execution: int = 0

    # Timestamps
    dispatch_time: Optional[datetime] = None
    start_time: Optional[datetime] = None
    finish_time: Optional[datetime] = None
    last_heartbeat: Optional[datetime] = None

    details: TaskFailureDetails = Field(default_factory=TaskFailureDetails)

    def to_log_context(self) -> dict[str, Any]:
        return {
            "task_id": self.id,
            "project": self.project,
            "host_id": self.host_id,
            "execution": self.execution,
        }
