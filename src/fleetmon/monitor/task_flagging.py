"""Task flagging functions - select tasks whose agents went silent."""

from datetime import datetime, timedelta

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.models import Task


async def flag_timed_out_heartbeats(
    store: FleetStore,
    settings: Settings,
    now: datetime,
) -> list[Task]:
    """Dispatched or running tasks whose last heartbeat is older than the timeout."""
    cutoff = now - timedelta(seconds=settings.heartbeat_timeout_seconds)
    return await store.tasks.find_in_progress_silent_since(cutoff)
