"""Notification builders - warnings for spawn host owners and operators."""

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Iterable

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.models import Host, HostStatus, Notification, NotificationKind

logger = logging.getLogger(__name__)


def expiration_warning_key(hours: int) -> str:
    return f"expiration-warning-{hours}h"


def slow_provisioning_warning_key(recipient: str) -> str:
    return f"slow-provisioning-warning:{recipient}"


def _mark_sent(store: FleetStore, host_id: str, keys: Iterable[str]) -> Callable[[], Awaitable[None]]:
    keys = list(keys)

    async def mark() -> None:
        await store.hosts.mark_notifications_sent(host_id, keys)

    return mark


async def spawn_host_expiration_warnings(
    store: FleetStore,
    settings: Settings,
    now: datetime,
) -> list[Notification]:
    """
    Warn spawn host owners ahead of expiration.

    A host that has crossed several thresholds since the last pass gets one
    notification for the most urgent of them; delivering it marks every
    crossed threshold as sent.
    """
    thresholds = settings.spawn_host_warning_thresholds_hours
    if not thresholds:
        return []

    horizon = now + timedelta(hours=max(thresholds))
    hosts = await store.hosts.find(
        statuses=HostStatus.live_states(),
        user_host=True,
        expiring_before=horizon,
    )

    notifications: list[Notification] = []
    for host in hosts:
        if host.expiration_time is None or host.expiration_time <= now:
            # Expired hosts are reclaimed by the host monitor instead
            continue

        remaining = host.expiration_time - now
        crossed = [hours for hours in thresholds if remaining <= timedelta(hours=hours)]
        if not crossed:
            continue

        most_urgent = min(crossed)
        if host.notification_sent(expiration_warning_key(most_urgent)):
            continue

        notifications.append(
            Notification(
                recipient=host.started_by,
                subject=f"Spawn host {host.id} expires in less than {most_urgent} hours",
                body=_expiration_body(host, most_urgent),
                kind=NotificationKind.SPAWN_HOST_EXPIRATION,
                host_id=host.id,
                on_sent=_mark_sent(
                    store, host.id, [expiration_warning_key(hours) for hours in crossed]
                ),
            )
        )

    return notifications


def _expiration_body(host: Host, hours: int) -> str:
    expires = host.expiration_time.strftime("%Y-%m-%d %H:%M UTC")
    return (
        f"Your spawn host {host.id} ({host.host_name or 'no DNS name yet'}) will be "
        f"terminated at {expires}, less than {hours} hours from now. "
        f"Extend its expiration to keep it."
    )


async def slow_provisioning_warnings(
    store: FleetStore,
    settings: Settings,
    now: datetime,
) -> list[Notification]:
    """
    Tell operators about hosts that are taking too long to provision.

    Each operator's warning is tracked on its own, so one failed delivery is
    retried next pass without repeating the ones that went out.
    """
    if not settings.admin_recipients:
        logger.debug("No admin recipients configured, skipping slow provisioning warnings")
        return []

    cutoff = now - timedelta(minutes=settings.slow_provisioning_threshold_minutes)
    hosts = await store.hosts.find(
        statuses=HostStatus.starting_states(),
        created_before=cutoff,
    )

    notifications: list[Notification] = []
    for host in hosts:
        minutes = int((now - host.creation_time).total_seconds() // 60)
        for recipient in settings.admin_recipients:
            key = slow_provisioning_warning_key(recipient)
            if host.notification_sent(key):
                continue
            notifications.append(
                Notification(
                    recipient=recipient,
                    subject=f"Host {host.id} is taking a long time to provision",
                    body=(
                        f"Host {host.id} of distro {host.distro_id} has been "
                        f"{host.status.value} for {minutes} minutes."
                    ),
                    kind=NotificationKind.SLOW_PROVISIONING,
                    host_id=host.id,
                    on_sent=_mark_sent(store, host.id, [key]),
                )
            )

    return notifications
