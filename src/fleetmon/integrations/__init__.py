"""Clients for the services the monitor acts through."""

from fleetmon.integrations.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitBreakerStats,
    CircuitState,
    build_circuit_breaker,
)
from fleetmon.integrations.notifications import NotificationSender, WebhookNotificationSender
from fleetmon.integrations.provisioner import HostProvisioner, ProvisionerClient
from fleetmon.integrations.reachability import ReachabilityProber, TcpReachabilityProber

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpen",
    "CircuitBreakerStats",
    "CircuitState",
    "HostProvisioner",
    "NotificationSender",
    "ProvisionerClient",
    "ReachabilityProber",
    "TcpReachabilityProber",
    "WebhookNotificationSender",
    "build_circuit_breaker",
]
