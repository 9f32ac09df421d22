"""Database repositories for fleet entities."""

from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetmon.db.tables import (
    DistroTable,
    EventTable,
    HostTable,
    ProjectRefTable,
    ProjectTable,
    TaskTable,
)
from fleetmon.models import (
    Distro,
    EventType,
    Host,
    HostStatus,
    Project,
    ProjectRef,
    ResourceType,
    Task,
    TaskFailureDetails,
    TaskStatus,
)
from fleetmon.utils.time import ensure_utc, utc_now


class HostRepository:
    """Repository for host operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, host: Host) -> Host:
        """Insert a host record."""
        row = HostTable(
            id=host.id,
            host_name=host.host_name,
            distro_id=host.distro_id,
            provider=host.provider,
            status=host.status,
            started_by=host.started_by,
            user_host=host.user_host,
            creation_time=host.creation_time,
            provision_time=host.provision_time,
            expiration_time=host.expiration_time,
            termination_time=host.termination_time,
            last_task_completed_time=host.last_task_completed_time,
            last_reachability_check=host.last_reachability_check,
            running_task=host.running_task,
            notifications=dict(host.notifications),
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, host_id: str) -> Host | None:
        """Get a host by ID."""
        result = await self.session.execute(
            select(HostTable)
            .where(HostTable.id == host_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def find(
        self,
        statuses: Iterable[HostStatus] | None = None,
        distro_id: str | None = None,
        user_host: bool | None = None,
        created_before: datetime | None = None,
        expiring_before: datetime | None = None,
        has_expiration: bool | None = None,
    ) -> list[Host]:
        """Find hosts matching every given filter, oldest first."""
        # Conditional updates bypass the identity map; always reload rows
        query = select(HostTable).execution_options(populate_existing=True)

        if statuses is not None:
            query = query.where(HostTable.status.in_(list(statuses)))
        if distro_id is not None:
            query = query.where(HostTable.distro_id == distro_id)
        if user_host is not None:
            query = query.where(HostTable.user_host == user_host)
        if created_before is not None:
            query = query.where(HostTable.creation_time < created_before)
        if expiring_before is not None:
            query = query.where(
                HostTable.expiration_time.is_not(None),
                HostTable.expiration_time < expiring_before,
            )
        if has_expiration is not None:
            if has_expiration:
                query = query.where(HostTable.expiration_time.is_not(None))
            else:
                query = query.where(HostTable.expiration_time.is_(None))

        query = query.order_by(HostTable.creation_time.asc(), HostTable.id.asc())
        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def update_status(
        self,
        host_id: str,
        old_status: HostStatus,
        new_status: HostStatus,
        now: datetime | None = None,
    ) -> bool:
        """
        Move a host from old_status to new_status.

        The update only applies while the host is still in old_status, so a
        concurrent writer that already moved the host wins and this returns
        False.
        """
        now = now or utc_now()
        values: dict[str, Any] = {"status": new_status}
        if new_status == HostStatus.TERMINATED:
            values["termination_time"] = now

        result = await self.session.execute(
            update(HostTable)
            .where(HostTable.id == host_id, HostTable.status == old_status)
            .values(**values)
        )
        return result.rowcount == 1

    async def clear_running_task(
        self,
        host_id: str,
        task_id: str,
        now: datetime | None = None,
    ) -> bool:
        """Clear the host's running task if it is still task_id."""
        now = now or utc_now()
        result = await self.session.execute(
            update(HostTable)
            .where(HostTable.id == host_id, HostTable.running_task == task_id)
            .values(running_task=None, last_task_completed_time=now)
        )
        return result.rowcount == 1

    async def set_reachability_checked(self, host_id: str, now: datetime) -> None:
        await self.session.execute(
            update(HostTable)
            .where(HostTable.id == host_id)
            .values(last_reachability_check=now)
        )

    async def mark_notifications_sent(self, host_id: str, keys: Iterable[str]) -> None:
        """Record warning keys as sent for a host."""
        result = await self.session.execute(
            select(HostTable)
            .where(HostTable.id == host_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return
        notifications = dict(row.notifications or {})
        for key in keys:
            notifications[key] = True
        # Reassign so the JSON column is seen as changed
        row.notifications = notifications
        await self.session.flush()

    def _row_to_model(self, row: HostTable) -> Host:
        return Host(
            id=row.id,
            host_name=row.host_name,
            distro_id=row.distro_id,
            provider=row.provider,
            status=row.status,
            started_by=row.started_by,
            user_host=row.user_host,
            creation_time=ensure_utc(row.creation_time),
            provision_time=ensure_utc(row.provision_time),
            expiration_time=ensure_utc(row.expiration_time),
            termination_time=ensure_utc(row.termination_time),
            last_task_completed_time=ensure_utc(row.last_task_completed_time),
            last_reachability_check=ensure_utc(row.last_reachability_check),
            running_task=row.running_task,
            notifications=dict(row.notifications or {}),
        )


class TaskRepository:
    """Repository for task operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, task: Task) -> Task:
        """Insert a task record."""
        row = TaskTable(
            id=task.id,
            display_name=task.display_name,
            project=task.project,
            distro_id=task.distro_id,
            host_id=task.host_id,
            status=task.status,
            execution=task.execution,
            dispatch_time=task.dispatch_time,
            start_time=task.start_time,
            finish_time=task.finish_time,
            last_heartbeat=task.last_heartbeat,
            details=task.details.model_dump(),
        )
        self.session.add(row)
        await self.session.flush()
        return self._row_to_model(row)

    async def get(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        result = await self.session.execute(
            select(TaskTable)
            .where(TaskTable.id == task_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def find_in_progress_silent_since(self, cutoff: datetime) -> list[Task]:
        """
        Find dispatched or running tasks with no sign of life since cutoff.

        The last sign of life is the last heartbeat, falling back to the start
        and dispatch times for tasks that never sent one.
        """
        last_seen = func.coalesce(
            TaskTable.last_heartbeat,
            TaskTable.start_time,
            TaskTable.dispatch_time,
        )
        query = (
            select(TaskTable)
            .where(
                TaskTable.status.in_(list(TaskStatus.in_progress_states())),
                last_seen.is_not(None),
                last_seen < cutoff,
            )
            .order_by(TaskTable.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def mark_failed(
        self,
        task_id: str,
        details: TaskFailureDetails,
        now: datetime | None = None,
    ) -> bool:
        """Fail a task that is still dispatched or running."""
        now = now or utc_now()
        result = await self.session.execute(
            update(TaskTable)
            .where(
                TaskTable.id == task_id,
                TaskTable.status.in_(list(TaskStatus.in_progress_states())),
            )
            .values(
                status=TaskStatus.FAILED,
                finish_time=now,
                details=details.model_dump(),
            )
        )
        return result.rowcount == 1

    async def reset_for_retry(self, task_id: str) -> Task | None:
        """Put a failed task back in the queue as its next execution."""
        task = await self.get(task_id)
        if not task or task.status != TaskStatus.FAILED:
            return task

        await self.session.execute(
            update(TaskTable)
            .where(TaskTable.id == task_id, TaskTable.status == TaskStatus.FAILED)
            .values(
                status=TaskStatus.UNDISPATCHED,
                execution=task.execution + 1,
                host_id=None,
                dispatch_time=None,
                start_time=None,
                finish_time=None,
                last_heartbeat=None,
                details=TaskFailureDetails().model_dump(),
            )
        )
        return await self.get(task_id)

    def _row_to_model(self, row: TaskTable) -> Task:
        return Task(
            id=row.id,
            display_name=row.display_name,
            project=row.project,
            distro_id=row.distro_id,
            host_id=row.host_id,
            status=row.status,
            execution=row.execution,
            dispatch_time=ensure_utc(row.dispatch_time),
            start_time=ensure_utc(row.start_time),
            finish_time=ensure_utc(row.finish_time),
            last_heartbeat=ensure_utc(row.last_heartbeat),
            details=TaskFailureDetails.model_validate(row.details or {}),
        )


class DistroRepository:
    """Repository for distro configuration."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, distro: Distro) -> Distro:
        self.session.add(DistroTable(**distro.model_dump()))
        await self.session.flush()
        return distro

    async def find_all(self) -> list[Distro]:
        """Load every distro."""
        result = await self.session.execute(select(DistroTable).order_by(DistroTable.id.asc()))
        return [
            Distro(
                id=row.id,
                provider=row.provider,
                pool_size=row.pool_size,
                ssh_port=row.ssh_port,
            )
            for row in result.scalars().all()
        ]


class ProjectRepository:
    """Repository for project refs and resolved project configuration."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ref(self, ref: ProjectRef) -> ProjectRef:
        self.session.add(ProjectRefTable(identifier=ref.identifier, enabled=ref.enabled))
        await self.session.flush()
        return ref

    async def save_config(self, identifier: str, config: dict[str, Any]) -> None:
        """Store the raw configuration document for a project."""
        result = await self.session.execute(
            select(ProjectTable).where(ProjectTable.identifier == identifier)
        )
        existing = result.scalar_one_or_none()
        now = utc_now()

        if existing:
            existing.config = dict(config)
            existing.updated_at = now
        else:
            self.session.add(ProjectTable(identifier=identifier, config=dict(config), updated_at=now))

        await self.session.flush()

    async def find_all_refs(self) -> list[ProjectRef]:
        """Load every project ref."""
        result = await self.session.execute(
            select(ProjectRefTable).order_by(ProjectRefTable.identifier.asc())
        )
        return [
            ProjectRef(identifier=row.identifier, enabled=row.enabled)
            for row in result.scalars().all()
        ]

    async def find_project(self, ref: ProjectRef) -> Project | None:
        """
        Resolve a ref to its project.

        Returns None when no configuration is stored for the ref. Raises
        pydantic.ValidationError when the stored configuration is malformed.
        """
        result = await self.session.execute(
            select(ProjectTable).where(ProjectTable.identifier == ref.identifier)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        config = dict(row.config or {})
        config.setdefault("identifier", ref.identifier)
        project = Project.model_validate(config)
        if not ref.enabled:
            project = project.model_copy(update={"enabled": False})
        return project


class EventRepository:
    """Repository for the append-only events table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(
        self,
        event_id: UUID,
        resource_id: str,
        resource_type: ResourceType,
        event_type: EventType,
        timestamp: datetime,
        data: dict[str, Any],
        trace_id: str | None = None,
    ) -> EventTable:
        """Append an event row and flush it to obtain its sequence number."""
        row = EventTable(
            event_id=event_id,
            resource_id=resource_id,
            resource_type=resource_type,
            event_type=event_type,
            timestamp=timestamp,
            data=data,
            trace_id=trace_id,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def find_by_resource(self, resource_id: str) -> list[EventTable]:
        """All events for a resource, oldest first."""
        result = await self.session.execute(
            select(EventTable)
            .where(EventTable.resource_id == resource_id)
            .order_by(EventTable.timestamp.asc(), EventTable.sequence.asc())
        )
        return list(result.scalars().all())
