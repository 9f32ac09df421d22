"""Notifier - builds warnings and hands them to the delivery service."""

import logging
from datetime import datetime
from typing import Sequence

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.errors import MonitorError, NotificationError
from fleetmon.integrations.notifications import NotificationSender
from fleetmon.models import Notification
from fleetmon.monitor.policies import NotificationBuilder
from fleetmon.observability.metrics import metrics
from fleetmon.utils.time import utc_now

logger = logging.getLogger("fleetmon.monitor.notifier")


class Notifier:
    """Runs notification builders and delivers what they produce."""

    def __init__(
        self,
        store: FleetStore,
        sender: NotificationSender,
        builders: Sequence[NotificationBuilder],
    ):
        self.store = store
        self.sender = sender
        self.builders = tuple(builders)

    async def notify(
        self,
        settings: Settings,
        now: datetime | None = None,
    ) -> list[MonitorError]:
        """Build and send every notification, collecting failures."""
        now = now or utc_now()
        errors: list[MonitorError] = []

        for builder in self.builders:
            try:
                async with self.store.savepoint():
                    notifications = await builder.evaluate(self.store, settings, now)
            except Exception as e:
                logger.error(f"Error building notifications with {builder.name}: {e}")
                errors.append(NotificationError("building", builder.name, e))
                continue

            for notification in notifications:
                error = await self._deliver(notification)
                if error:
                    errors.append(error)

        return errors

    async def _deliver(self, notification: Notification) -> NotificationError | None:
        target = notification.host_id or notification.recipient
        try:
            await self.sender.send(notification)
        except Exception as e:
            logger.error(
                f"Error sending {notification.kind.value} notification "
                f"to {notification.recipient}: {e}"
            )
            metrics.inc_counter("monitor.notifications.failed")
            return NotificationError("sending", target, e)

        metrics.inc_counter("monitor.notifications.sent")

        if notification.on_sent is None:
            return None
        try:
            async with self.store.savepoint():
                await notification.on_sent()
        except Exception as e:
            logger.error(f"Error recording sent notification for {target}: {e}")
            return NotificationError("recording", target, e)
        return None
