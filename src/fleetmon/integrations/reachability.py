"""Host reachability probing."""

import asyncio
import logging
from typing import Protocol

from fleetmon.models import Distro, Host

logger = logging.getLogger(__name__)


class ReachabilityProber(Protocol):
    """Answers whether a host responds to a liveness probe."""

    async def is_reachable(self, host: Host, distro: Distro | None) -> bool: ...


class TcpReachabilityProber:
    """Treats a host as reachable when its SSH port accepts a TCP connection."""

    def __init__(self, timeout_seconds: float = 5.0, default_port: int = 22):
        self.timeout_seconds = timeout_seconds
        self.default_port = default_port

    async def is_reachable(self, host: Host, distro: Distro | None) -> bool:
        if not host.host_name:
            return False

        port = distro.ssh_port if distro else self.default_port
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host.host_name, port),
                timeout=self.timeout_seconds,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Host {host.id} ({host.host_name}:{port}) unreachable: {e}")
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True
