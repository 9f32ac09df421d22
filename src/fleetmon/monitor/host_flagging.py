"""Host flagging functions - select hosts that should be reclaimed.

Each function only reads fleet state. An empty result is the normal
outcome; errors propagate to the host monitor, which reports them per
policy.
"""

import logging
from datetime import datetime, timedelta

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.models import Distro, Host, HostStatus

logger = logging.getLogger(__name__)


def _is_static(host: Host, settings: Settings) -> bool:
    return host.provider == settings.static_provider_name


async def flag_decommissioned_hosts(
    store: FleetStore,
    distros: list[Distro],
    settings: Settings,
    now: datetime,
) -> list[Host]:
    """Decommissioned hosts that have finished their last task."""
    hosts = await store.hosts.find(statuses=[HostStatus.DECOMMISSIONED])
    return [host for host in hosts if host.is_free()]


async def flag_idle_hosts(
    store: FleetStore,
    distros: list[Distro],
    settings: Settings,
    now: datetime,
) -> list[Host]:
    """Running task hosts that have had nothing to do for too long."""
    cutoff = now - timedelta(minutes=settings.idle_host_threshold_minutes)
    hosts = await store.hosts.find(statuses=[HostStatus.RUNNING], user_host=False)
    return [
        host
        for host in hosts
        if host.is_free() and not _is_static(host, settings) and host.idle_since() < cutoff
    ]


async def flag_excess_hosts(
    store: FleetStore,
    distros: list[Distro],
    settings: Settings,
    now: datetime,
) -> list[Host]:
    """
    Running hosts beyond each distro's pool size.

    Free hosts are picked before busy ones, oldest first, so a pool shrinks
    by giving up idle capacity before draining hosts that are working.
    """
    flagged: list[Host] = []

    for distro in distros:
        if not distro.has_pool_limit() or distro.provider == settings.static_provider_name:
            continue

        hosts = await store.hosts.find(
            statuses=[HostStatus.RUNNING],
            distro_id=distro.id,
            user_host=False,
        )
        hosts = [host for host in hosts if not _is_static(host, settings)]
        excess = len(hosts) - distro.pool_size
        if excess <= 0:
            continue

        free = [host for host in hosts if host.is_free()]
        busy = [host for host in hosts if not host.is_free()]
        logger.info(
            f"Distro {distro.id} has {len(hosts)} running hosts for a pool of "
            f"{distro.pool_size}, flagging {excess}"
        )
        flagged.extend((free + busy)[:excess])

    return flagged


async def flag_unprovisioned_hosts(
    store: FleetStore,
    distros: list[Distro],
    settings: Settings,
    now: datetime,
) -> list[Host]:
    """Hosts that did not become ready before the provisioning deadline."""
    cutoff = now - timedelta(minutes=settings.unprovisioned_host_cutoff_minutes)
    hosts = await store.hosts.find(
        statuses=HostStatus.starting_states(),
        created_before=cutoff,
    )
    return [host for host in hosts if not _is_static(host, settings)]


async def flag_provisioning_failed_hosts(
    store: FleetStore,
    distros: list[Distro],
    settings: Settings,
    now: datetime,
) -> list[Host]:
    return await store.hosts.find(statuses=[HostStatus.PROVISION_FAILED])


async def flag_expired_hosts(
    store: FleetStore,
    distros: list[Distro],
    settings: Settings,
    now: datetime,
) -> list[Host]:
    """
    Spawn hosts whose expiration time has passed.

    A decommissioned host still running a task is left to the decommissioned
    predicate, which picks it up once the task is done.
    """
    hosts = await store.hosts.find(
        statuses=HostStatus.live_states(),
        user_host=True,
        expiring_before=now,
    )
    return [
        host
        for host in hosts
        if host.status != HostStatus.DECOMMISSIONED or host.is_free()
    ]
