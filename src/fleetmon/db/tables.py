"""SQLAlchemy table definitions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from fleetmon.db.base import Base
from fleetmon.models.enums import EventType, HostStatus, ResourceType, TaskStatus


class HostTable(Base):
    """Hosts table - provisioned compute instances."""

    __tablename__ = "hosts"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    host_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    distro_id: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    status: Mapped[HostStatus] = mapped_column(
        Enum(HostStatus), nullable=False, default=HostStatus.UNPROVISIONED
    )

    # Ownership
    started_by: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    user_host: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    creation_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    provision_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expiration_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    termination_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_task_completed_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_reachability_check: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    running_task: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notifications: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        # Index for status sweeps
        Index("idx_hosts_status", "status", "creation_time"),
        # Index for pool size accounting
        Index("idx_hosts_distro_status", "distro_id", "status"),
    )


class TaskTable(Base):
    """Tasks table - build work dispatched to hosts."""

    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    project: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    distro_id: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    host_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus), nullable=False, default=TaskStatus.UNDISPATCHED
    )
    execution: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    dispatch_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finish_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_heartbeat: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        # Index for heartbeat sweeps
        Index("idx_tasks_status_heartbeat", "status", "last_heartbeat"),
    )


class DistroTable(Base):
    """Distros table - host class configuration."""

    __tablename__ = "distros"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    provider: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    pool_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ssh_port: Mapped[int] = mapped_column(Integer, nullable=False, default=22)


class ProjectRefTable(Base):
    """Project refs table - pointers to project configuration."""

    __tablename__ = "project_refs"

    identifier: Mapped[str] = mapped_column(String(255), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ProjectTable(Base):
    """Projects table - stored project configuration documents."""

    __tablename__ = "projects"

    identifier: Mapped[str] = mapped_column(String(255), primary_key=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EventTable(Base):
    """Events table - append-only lifecycle audit log."""

    __tablename__ = "events"

    # Insertion order; breaks ties between events sharing a timestamp
    sequence: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    event_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, unique=True)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_type: Mapped[ResourceType] = mapped_column(Enum(ResourceType), nullable=False)
    event_type: Mapped[EventType] = mapped_column(Enum(EventType), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    trace_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_events_resource", "resource_id", "timestamp", "sequence"),
        Index("idx_events_type", "event_type", "timestamp"),
    )
