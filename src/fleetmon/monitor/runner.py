"""Monitoring run - one full reconciliation pass over the fleet."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.errors import FleetLoadError, MonitorError, ProjectResolutionError
from fleetmon.events import EventLog
from fleetmon.integrations.notifications import NotificationSender
from fleetmon.integrations.provisioner import HostProvisioner
from fleetmon.integrations.reachability import ReachabilityProber
from fleetmon.models import Project, ProjectRef
from fleetmon.monitor.host_flagging import (
    flag_decommissioned_hosts,
    flag_excess_hosts,
    flag_expired_hosts,
    flag_idle_hosts,
    flag_provisioning_failed_hosts,
    flag_unprovisioned_hosts,
)
from fleetmon.monitor.host_monitor import HostMonitor
from fleetmon.monitor.host_monitoring import monitor_reachability
from fleetmon.monitor.notification_builders import (
    slow_provisioning_warnings,
    spawn_host_expiration_warnings,
)
from fleetmon.monitor.notifier import Notifier
from fleetmon.monitor.policies import (
    HostFlaggingPolicy,
    HostMonitoringCheck,
    NotificationBuilder,
    Policy,
    TaskFlaggingPolicy,
)
from fleetmon.monitor.task_flagging import flag_timed_out_heartbeats
from fleetmon.monitor.task_monitor import TaskMonitor
from fleetmon.observability.metrics import metrics
from fleetmon.observability.trace import set_trace_id
from fleetmon.utils.time import utc_now

logger = logging.getLogger("fleetmon.runner")


# Tasks to clean up
DEFAULT_TASK_FLAGGING_POLICIES: tuple[TaskFlaggingPolicy, ...] = (
    Policy("timed_out_heartbeats", flag_timed_out_heartbeats),
)

# Hosts to terminate or decommission
DEFAULT_HOST_FLAGGING_POLICIES: tuple[HostFlaggingPolicy, ...] = (
    Policy("decommissioned", flag_decommissioned_hosts),
    Policy("idle", flag_idle_hosts),
    Policy("excess", flag_excess_hosts),
    Policy("unprovisioned", flag_unprovisioned_hosts),
    Policy("provisioning_failed", flag_provisioning_failed_hosts),
    Policy("expired", flag_expired_hosts),
)

# Checks that observe hosts without reclaiming them
DEFAULT_HOST_MONITORING_CHECKS: tuple[HostMonitoringCheck, ...] = (
    Policy("reachability", monitor_reachability),
)

# Warnings to send
DEFAULT_NOTIFICATION_BUILDERS: tuple[NotificationBuilder, ...] = (
    Policy("spawn_host_expiration", spawn_host_expiration_warnings),
    Policy("slow_provisioning", slow_provisioning_warnings),
)


@dataclass
class MonitoringReport:
    """What went wrong during a run, stage by stage."""

    trace_id: str
    project_errors: list[MonitorError] = field(default_factory=list)
    task_errors: list[MonitorError] = field(default_factory=list)
    host_cleanup_errors: list[MonitorError] = field(default_factory=list)
    host_check_errors: list[MonitorError] = field(default_factory=list)
    notification_errors: list[MonitorError] = field(default_factory=list)

    @property
    def errors(self) -> list[MonitorError]:
        return [
            *self.project_errors,
            *self.task_errors,
            *self.host_cleanup_errors,
            *self.host_check_errors,
            *self.notification_errors,
        ]

    @property
    def skipped_projects(self) -> list[str]:
        return [
            error.identifier
            for error in self.project_errors
            if isinstance(error, ProjectResolutionError)
        ]


async def resolve_projects(
    store: FleetStore,
    refs: list[ProjectRef],
) -> tuple[dict[str, Project], list[MonitorError]]:
    """Resolve refs to projects, skipping any that fail or are missing."""
    projects: dict[str, Project] = {}
    errors: list[MonitorError] = []

    for ref in refs:
        try:
            async with store.savepoint():
                project = await store.projects.find_project(ref)
        except Exception as e:
            logger.error(f"error finding project {ref.identifier}: {e}")
            errors.append(ProjectResolutionError(ref.identifier, str(e)))
            continue

        if project is None:
            logger.error(f"no project entry found for ref {ref.identifier}")
            errors.append(ProjectResolutionError(ref.identifier, "no project entry found"))
            continue

        projects[project.identifier] = project

    return projects, errors


def _log_errors(stage: str, errors: list[MonitorError]) -> None:
    for error in errors:
        logger.error(f"Error {stage}: {error}")
    metrics.set_gauge(f"monitor.run.errors.{stage.replace(' ', '_')}", len(errors))


async def run_all_monitoring(
    settings: Settings,
    store: FleetStore,
    *,
    provisioner: HostProvisioner,
    sender: NotificationSender,
    prober: ReachabilityProber,
    now: datetime | None = None,
) -> MonitoringReport:
    """
    Run every monitoring stage once.

    Stages run in a fixed order: task cleanup, host cleanup, host
    monitoring checks, notifications. Each stage's work is committed before
    the next starts. Per-item failures are logged and reported, never
    raised.

    Raises:
        FleetLoadError: distros or project refs could not be loaded; no
            stage has run.
    """
    trace_id = set_trace_id()
    now = now or utc_now()
    report = MonitoringReport(trace_id=trace_id)
    logger.info(f"Starting monitoring run {trace_id}")

    with metrics.timer("monitor.run.duration_ms"):
        try:
            distros = await store.distros.find_all()
        except Exception as e:
            raise FleetLoadError("distros", e) from e

        try:
            refs = await store.projects.find_all_refs()
        except Exception as e:
            raise FleetLoadError("project refs", e) from e

        projects, report.project_errors = await resolve_projects(store, refs)

        events = EventLog(store.events)

        task_monitor = TaskMonitor(store, events, DEFAULT_TASK_FLAGGING_POLICIES)
        report.task_errors = await task_monitor.cleanup_tasks(projects, settings, now)
        _log_errors("cleaning up tasks", report.task_errors)
        await store.commit()

        host_monitor = HostMonitor(
            store,
            events,
            provisioner,
            prober,
            DEFAULT_HOST_FLAGGING_POLICIES,
            DEFAULT_HOST_MONITORING_CHECKS,
        )
        report.host_cleanup_errors = await host_monitor.cleanup_hosts(distros, settings, now)
        _log_errors("cleaning up hosts", report.host_cleanup_errors)
        await store.commit()

        report.host_check_errors = await host_monitor.run_monitoring_checks(settings, now)
        _log_errors("running host monitoring checks", report.host_check_errors)
        await store.commit()

        notifier = Notifier(store, sender, DEFAULT_NOTIFICATION_BUILDERS)
        report.notification_errors = await notifier.notify(settings, now)
        _log_errors("sending notifications", report.notification_errors)
        await store.commit()

    logger.info(
        f"Finished monitoring run {trace_id} with {len(report.errors)} errors "
        f"({len(projects)} projects, {len(distros)} distros)"
    )
    return report
