"""Event model - immutable audit records of resource lifecycle transitions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from fleetmon.models.enums import EventType, ResourceType


class HostEventData(BaseModel):
    """Payload shared by every host event.

    One flat shape carries the fields of all host transitions. Each event type
    fills only the fields it is about; the rest stay blank.
    """

    model_config = ConfigDict(frozen=True)

    resource_type: ResourceType = ResourceType.HOST
    old_status: str = ""
    new_status: str = ""
    hostname: str = ""
    task_id: str = ""
    task_pid: str = ""
    setup_log: str = ""
    monitor_op: str = ""


# Resource type -> payload class used to decode stored event data
EVENT_DATA_TYPES: dict[ResourceType, type[BaseModel]] = {
    ResourceType.HOST: HostEventData,
}


def decode_event_data(resource_type: ResourceType, raw: dict[str, Any]) -> BaseModel:
    """Build the typed payload for a stored event."""
    data_type = EVENT_DATA_TYPES.get(resource_type)
    if data_type is None:
        raise ValueError(f"No event data registered for resource type {resource_type.value}")
    return data_type.model_validate(raw)


class Event(BaseModel):
    """A recorded lifecycle transition. Never updated once written."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID
    sequence: int
    resource_id: str
    resource_type: ResourceType
    event_type: EventType
    timestamp: datetime
    data: HostEventData
