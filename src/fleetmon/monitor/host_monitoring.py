"""Host monitoring checks - observe hosts without reclaiming them."""

import asyncio
import logging
from datetime import datetime, timedelta

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.errors import CleanupError, MonitorError
from fleetmon.events import EventLog, log_host_monitor_flag
from fleetmon.integrations.reachability import ReachabilityProber
from fleetmon.models import Host, HostStatus
from fleetmon.observability.metrics import metrics

logger = logging.getLogger(__name__)

MONITOR_OP_UNREACHABLE = "unreachable"

# Probes in flight at once
MAX_CONCURRENT_PROBES = 20


def _due_for_check(host: Host, cutoff: datetime) -> bool:
    return host.last_reachability_check is None or host.last_reachability_check < cutoff


async def monitor_reachability(
    store: FleetStore,
    events: EventLog,
    prober: ReachabilityProber,
    settings: Settings,
    now: datetime,
) -> list[MonitorError]:
    """
    Probe running hosts that have not been checked recently.

    Every probed host gets its check time updated. An unreachable host is
    flagged with a monitor event; its status is left alone. Probes run
    concurrently, the writes that follow run one host at a time.
    """
    cutoff = now - timedelta(minutes=settings.reachability_check_interval_minutes)
    distros = {distro.id: distro for distro in await store.distros.find_all()}
    hosts = [
        host
        for host in await store.hosts.find(statuses=[HostStatus.RUNNING])
        if _due_for_check(host, cutoff)
    ]
    if not hosts:
        return []

    semaphore = asyncio.Semaphore(MAX_CONCURRENT_PROBES)

    async def probe(host: Host) -> bool:
        async with semaphore:
            return await prober.is_reachable(host, distros.get(host.distro_id))

    results = await asyncio.gather(*(probe(host) for host in hosts), return_exceptions=True)

    errors: list[MonitorError] = []
    for host, result in zip(hosts, results):
        if isinstance(result, Exception):
            logger.error(f"Error probing host {host.id}: {result}")
            errors.append(CleanupError("host", host.id, "probing", result))
            continue

        try:
            async with store.savepoint():
                await store.hosts.set_reachability_checked(host.id, now)
                if not result:
                    await log_host_monitor_flag(events, host.id, MONITOR_OP_UNREACHABLE)
        except Exception as e:
            logger.error(f"Error recording reachability of host {host.id}: {e}")
            errors.append(CleanupError("host", host.id, "recording reachability of", e))
            continue

        if not result:
            logger.warning(f"Host {host.id} ({host.host_name}) is unreachable")
            metrics.inc_counter("monitor.hosts.unreachable")

    return errors
