"""Fleet monitoring - flagging policies, cleanup engines and the run orchestrator."""

from fleetmon.monitor.host_monitor import HostMonitor
from fleetmon.monitor.notifier import Notifier
from fleetmon.monitor.policies import (
    HostFlaggingPolicy,
    HostMonitoringCheck,
    NotificationBuilder,
    Policy,
    TaskFlaggingPolicy,
)
from fleetmon.monitor.runner import (
    DEFAULT_HOST_FLAGGING_POLICIES,
    DEFAULT_HOST_MONITORING_CHECKS,
    DEFAULT_NOTIFICATION_BUILDERS,
    DEFAULT_TASK_FLAGGING_POLICIES,
    MonitoringReport,
    run_all_monitoring,
)
from fleetmon.monitor.task_monitor import TaskMonitor

__all__ = [
    "DEFAULT_HOST_FLAGGING_POLICIES",
    "DEFAULT_HOST_MONITORING_CHECKS",
    "DEFAULT_NOTIFICATION_BUILDERS",
    "DEFAULT_TASK_FLAGGING_POLICIES",
    "HostFlaggingPolicy",
    "HostMonitor",
    "HostMonitoringCheck",
    "MonitoringReport",
    "NotificationBuilder",
    "Notifier",
    "Policy",
    "TaskFlaggingPolicy",
    "TaskMonitor",
    "run_all_monitoring",
]
