"""Corrective actions applied to flagged hosts and tasks.

Callers run each action inside a SAVEPOINT so that a failure rolls back the
writes of that one resource only.
"""

import logging
from datetime import datetime

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.errors import StaleResourceError
from fleetmon.events import EventLog, log_host_running_task_cleared, log_host_status_changed
from fleetmon.integrations.provisioner import HostProvisioner
from fleetmon.models import CleanupAction, Host, Project, Task, TaskFailureDetails

logger = logging.getLogger(__name__)


def heartbeat_timeout_details() -> TaskFailureDetails:
    return TaskFailureDetails(type="system", description="heartbeat", timed_out=True)


def choose_host_action(host: Host) -> CleanupAction:
    """Hosts still running a task are drained; the rest are terminated."""
    if host.is_free():
        return CleanupAction.TERMINATE
    return CleanupAction.DECOMMISSION


async def terminate_host(
    store: FleetStore,
    events: EventLog,
    provisioner: HostProvisioner,
    host: Host,
    now: datetime,
) -> CleanupAction | None:
    """
    Reclaim a flagged host.

    The status change and its event are written before the provisioner is
    called; if the provisioner fails, the caller's SAVEPOINT discards both.
    Returns None when the host already has the status the action leads to.

    Raises:
        StaleResourceError: the host left the status it was flagged in.
    """
    action = choose_host_action(host)
    new_status = action.target_status
    if host.status == new_status:
        logger.debug(f"Host {host.id} is already {new_status.value}, nothing to do")
        return None

    if not await store.hosts.update_status(host.id, host.status, new_status, now):
        raise StaleResourceError("host", host.id, host.status.value)
    await log_host_status_changed(events, host.id, host.status, new_status)

    await provisioner.apply(host.id, action)

    logger.info(
        f"Host {host.id} {host.status.value} -> {new_status.value} ({action.value})"
    )
    return action


async def cleanup_timed_out_task(
    store: FleetStore,
    events: EventLog,
    task: Task,
    projects: dict[str, Project],
    settings: Settings,
    now: datetime,
) -> Task | None:
    """
    Fail a task whose heartbeat timed out and release its host.

    The task is reset for another execution when its project is known and
    enabled and it has executions left; otherwise it stays failed.

    Raises:
        StaleResourceError: the task is no longer dispatched or running.
    """
    if not await store.tasks.mark_failed(task.id, heartbeat_timeout_details(), now):
        raise StaleResourceError("task", task.id, "dispatched or running")

    if task.host_id and await store.hosts.clear_running_task(task.host_id, task.id, now):
        await log_host_running_task_cleared(events, task.host_id, task.id)

    project = projects.get(task.project)
    if project is None or not project.enabled:
        logger.info(f"Task {task.id} failed on heartbeat timeout; project {task.project} inactive")
        return await store.tasks.get(task.id)

    if task.execution + 1 >= settings.task_max_executions:
        logger.info(
            f"Task {task.id} failed on heartbeat timeout after {task.execution + 1} executions"
        )
        return await store.tasks.get(task.id)

    logger.info(f"Task {task.id} failed on heartbeat timeout, resetting for retry")
    return await store.tasks.reset_for_retry(task.id)
