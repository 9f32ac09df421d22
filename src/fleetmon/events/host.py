"""Host event builders.

Each helper records one kind of host transition, fixing the resource and
event type and filling only the payload fields that transition is about.
"""

from fleetmon.events.log import EventLog
from fleetmon.models import Event, EventType, HostEventData, HostStatus, ResourceType


async def _log_host_event(
    log: EventLog,
    host_id: str,
    event_type: EventType,
    data: HostEventData | None = None,
) -> Event:
    return await log.record(host_id, ResourceType.HOST, event_type, data or HostEventData())


async def log_host_created(log: EventLog, host_id: str) -> Event:
    return await _log_host_event(log, host_id, EventType.HOST_CREATED)


async def log_host_status_changed(
    log: EventLog,
    host_id: str,
    old_status: HostStatus | str,
    new_status: HostStatus | str,
) -> Event:
    return await _log_host_event(
        log,
        host_id,
        EventType.HOST_STATUS_CHANGED,
        HostEventData(
            old_status=HostStatus(old_status).value,
            new_status=HostStatus(new_status).value,
        ),
    )


async def log_host_dns_name_set(log: EventLog, host_id: str, hostname: str) -> Event:
    return await _log_host_event(
        log, host_id, EventType.HOST_DNS_NAME_SET, HostEventData(hostname=hostname)
    )


async def log_host_provisioned(log: EventLog, host_id: str) -> Event:
    return await _log_host_event(log, host_id, EventType.HOST_PROVISIONED)


async def log_host_provision_failed(log: EventLog, host_id: str, setup_log: str) -> Event:
    return await _log_host_event(
        log, host_id, EventType.HOST_PROVISION_FAILED, HostEventData(setup_log=setup_log)
    )


async def log_host_running_task_set(log: EventLog, host_id: str, task_id: str) -> Event:
    return await _log_host_event(
        log, host_id, EventType.HOST_RUNNING_TASK_SET, HostEventData(task_id=task_id)
    )


async def log_host_running_task_cleared(log: EventLog, host_id: str, task_id: str) -> Event:
    return await _log_host_event(
        log, host_id, EventType.HOST_RUNNING_TASK_CLEARED, HostEventData(task_id=task_id)
    )


async def log_host_task_pid_set(log: EventLog, host_id: str, task_pid: str) -> Event:
    return await _log_host_event(
        log, host_id, EventType.HOST_TASK_PID_SET, HostEventData(task_pid=task_pid)
    )


async def log_host_monitor_flag(log: EventLog, host_id: str, monitor_op: str) -> Event:
    """A monitoring check found something wrong with the host; status is untouched."""
    return await _log_host_event(
        log, host_id, EventType.HOST_MONITOR_FLAG, HostEventData(monitor_op=monitor_op)
    )
