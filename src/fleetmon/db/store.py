"""Fleet data store facade."""

from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from fleetmon.db.repositories import (
    DistroRepository,
    EventRepository,
    HostRepository,
    ProjectRepository,
    TaskRepository,
)


class FleetStore:
    """Bundles the fleet repositories around a single session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.hosts = HostRepository(session)
        self.tasks = TaskRepository(session)
        self.distros = DistroRepository(session)
        self.projects = ProjectRepository(session)
        self.events = EventRepository(session)

    def savepoint(self) -> AsyncSessionTransaction:
        """Open a SAVEPOINT so one resource's failure rolls back only its own writes."""
        return self.session.begin_nested()

    async def commit(self) -> None:
        await self.session.commit()
