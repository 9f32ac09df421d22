"""Host lifecycle event audit log."""

from fleetmon.events.host import (
    log_host_created,
    log_host_dns_name_set,
    log_host_monitor_flag,
    log_host_provision_failed,
    log_host_provisioned,
    log_host_running_task_cleared,
    log_host_running_task_set,
    log_host_status_changed,
    log_host_task_pid_set,
)
from fleetmon.events.log import EventLog, MonotonicClock, event_clock

__all__ = [
    "EventLog",
    "MonotonicClock",
    "event_clock",
    "log_host_created",
    "log_host_dns_name_set",
    "log_host_monitor_flag",
    "log_host_provision_failed",
    "log_host_provisioned",
    "log_host_running_task_cleared",
    "log_host_running_task_set",
    "log_host_status_changed",
    "log_host_task_pid_set",
]
