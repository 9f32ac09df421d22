"""Host monitor - reclaims flagged hosts and runs host monitoring checks."""

import logging
from datetime import datetime
from typing import Sequence

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.errors import CleanupError, FlaggingError, MonitorError
from fleetmon.events import EventLog
from fleetmon.integrations.provisioner import HostProvisioner
from fleetmon.integrations.reachability import ReachabilityProber
from fleetmon.models import Distro, Host
from fleetmon.monitor.cleanup import terminate_host
from fleetmon.monitor.policies import HostFlaggingPolicy, HostMonitoringCheck
from fleetmon.observability.metrics import metrics
from fleetmon.utils.time import utc_now

logger = logging.getLogger("fleetmon.monitor.hosts")


class HostMonitor:
    """Runs the host cleanup pass and the host monitoring pass."""

    def __init__(
        self,
        store: FleetStore,
        events: EventLog,
        provisioner: HostProvisioner,
        prober: ReachabilityProber,
        flagging_policies: Sequence[HostFlaggingPolicy],
        monitoring_checks: Sequence[HostMonitoringCheck],
    ):
        self.store = store
        self.events = events
        self.provisioner = provisioner
        self.prober = prober
        self.flagging_policies = tuple(flagging_policies)
        self.monitoring_checks = tuple(monitoring_checks)

    async def cleanup_hosts(
        self,
        distros: list[Distro],
        settings: Settings,
        now: datetime | None = None,
    ) -> list[MonitorError]:
        """
        Terminate or decommission every host a flagging policy selects.

        Each host is handled at most once per pass, by the first policy that
        flags it. Policy and host failures are collected and returned.
        """
        now = now or utc_now()
        errors: list[MonitorError] = []
        handled: set[str] = set()

        for policy in self.flagging_policies:
            try:
                async with self.store.savepoint():
                    hosts = await policy.evaluate(self.store, distros, settings, now)
            except Exception as e:
                logger.error(f"Error running host flagging policy {policy.name}: {e}")
                errors.append(FlaggingError("host monitor", policy.name, e))
                continue

            if hosts:
                logger.info(f"Policy {policy.name} flagged {len(hosts)} hosts")
            metrics.inc_counter("monitor.hosts.flagged", len(hosts))

            for host in hosts:
                if host.id in handled:
                    continue
                handled.add(host.id)

                error = await self._terminate(host, policy.name, now)
                if error:
                    errors.append(error)

        return errors

    async def _terminate(self, host: Host, reason: str, now: datetime) -> CleanupError | None:
        try:
            async with self.store.savepoint():
                action = await terminate_host(self.store, self.events, self.provisioner, host, now)
        except Exception as e:
            logger.error(f"Error cleaning up host {host.id} flagged by {reason}: {e}")
            metrics.inc_counter("monitor.hosts.cleanup_failed")
            return CleanupError("host", host.id, "cleaning up", e)

        if action is None:
            return None
        metrics.inc_counter("monitor.hosts.cleaned")
        metrics.inc_counter(f"monitor.hosts.{action.value}")
        return None

    async def run_monitoring_checks(
        self,
        settings: Settings,
        now: datetime | None = None,
    ) -> list[MonitorError]:
        """Run every monitoring check; checks never change host status."""
        now = now or utc_now()
        errors: list[MonitorError] = []

        for check in self.monitoring_checks:
            try:
                async with self.store.savepoint():
                    check_errors = await check.evaluate(
                        self.store, self.events, self.prober, settings, now
                    )
            except Exception as e:
                logger.error(f"Error running host monitoring check {check.name}: {e}")
                errors.append(FlaggingError("host monitoring", check.name, e))
                continue
            errors.extend(check_errors)

        return errors
