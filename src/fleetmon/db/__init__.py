"""fleetmon database layer."""

from fleetmon.db.base import Base, get_session, init_db
from fleetmon.db.store import FleetStore
from fleetmon.db.tables import (
    DistroTable,
    EventTable,
    HostTable,
    ProjectRefTable,
    ProjectTable,
    TaskTable,
)

__all__ = [
    "Base",
    "get_session",
    "init_db",
    "FleetStore",
    "DistroTable",
    "EventTable",
    "HostTable",
    "ProjectRefTable",
    "ProjectTable",
    "TaskTable",
]
