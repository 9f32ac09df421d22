"""Provisioning service client - applies terminal actions to hosts."""

import logging
from typing import Any, Optional, Protocol

import httpx

from fleetmon.config import Settings
from fleetmon.errors import ProvisionerError, ProvisionerNotConfigured
from fleetmon.integrations.circuit_breaker import CircuitBreaker, build_circuit_breaker
from fleetmon.models import CleanupAction

logger = logging.getLogger(__name__)


class HostProvisioner(Protocol):
    """Applies a terminal action to a host. Raises on failure."""

    async def apply(self, host_id: str, action: CleanupAction) -> None: ...


class ProvisionerClient:
    """
    HTTP client for the provisioning service.

    Usage:
        client = ProvisionerClient(settings)
        await client.apply("host-1", CleanupAction.TERMINATE)

    Each action is a POST to ``{endpoint}/hosts/{host_id}/{action}``; any
    non-2xx answer or transport error is raised as ProvisionerError.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._circuit_breaker: Optional[CircuitBreaker] = build_circuit_breaker(
            "provisioner", settings
        )

    async def apply(self, host_id: str, action: CleanupAction) -> None:
        if not self.settings.provisioner_endpoint:
            raise ProvisionerNotConfigured()

        if self._circuit_breaker:
            await self._circuit_breaker.call(self._post_action, host_id, action)
        else:
            await self._post_action(host_id, action)

    async def _post_action(self, host_id: str, action: CleanupAction) -> dict[str, Any]:
        base_url = self.settings.provisioner_endpoint.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if self.settings.provisioner_auth_token:
            headers["Authorization"] = f"Bearer {self.settings.provisioner_auth_token}"

        async with httpx.AsyncClient(
            timeout=self.settings.provisioner_timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(
                    f"{base_url}/hosts/{host_id}/{action.value}",
                    json={"host_id": host_id, "action": action.value},
                    headers=headers,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise ProvisionerError(
                    host_id, action.value, f"HTTP {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                raise ProvisionerError(host_id, action.value, str(e) or type(e).__name__) from e

        logger.info(f"Provisioner accepted {action.value} for host {host_id}")
        if response.content:
            return response.json()
        return {}
