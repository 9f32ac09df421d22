"""Notification delivery client."""

import logging
from typing import Optional, Protocol

import httpx

from fleetmon.config import Settings
from fleetmon.errors import DeliveryNotConfigured
from fleetmon.integrations.circuit_breaker import CircuitBreaker, build_circuit_breaker
from fleetmon.models import Notification

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Hands a notification to a delivery service. Raises on failure."""

    async def send(self, notification: Notification) -> None: ...


class WebhookNotificationSender:
    """Posts notifications as JSON to a delivery webhook (mail relay, chat bridge)."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._circuit_breaker: Optional[CircuitBreaker] = build_circuit_breaker(
            "notification-webhook", settings
        )

    async def send(self, notification: Notification) -> None:
        if not self.settings.notification_webhook_url:
            raise DeliveryNotConfigured()

        if self._circuit_breaker:
            await self._circuit_breaker.call(self._post, notification)
        else:
            await self._post(notification)

    async def _post(self, notification: Notification) -> None:
        headers = {"Content-Type": "application/json"}
        if self.settings.notification_auth_token:
            headers["Authorization"] = f"Bearer {self.settings.notification_auth_token}"

        async with httpx.AsyncClient(
            timeout=self.settings.notification_timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.post(
                self.settings.notification_webhook_url,
                json=notification.to_payload(),
                headers=headers,
            )
            response.raise_for_status()

        logger.info(
            f"Delivered {notification.kind.value} notification to {notification.recipient}"
        )
