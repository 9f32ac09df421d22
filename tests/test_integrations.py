"""
Integration client tests: provisioner, notification webhook, reachability
probe and the circuit breaker in front of outbound calls.
"""

import asyncio
import json
from datetime import timedelta

import httpx
import pytest

from fleetmon.config import Settings
from fleetmon.errors import DeliveryNotConfigured, ProvisionerError, ProvisionerNotConfigured
from fleetmon.integrations import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitState,
    ProvisionerClient,
    TcpReachabilityProber,
    WebhookNotificationSender,
    build_circuit_breaker,
)
from fleetmon.models import CleanupAction, Distro, Host, Notification, NotificationKind
from fleetmon.utils.time import utc_now


def _settings(**overrides) -> Settings:
    fields = {"circuit_breaker_enabled": False}
    fields.update(overrides)
    return Settings(_env_file=None, **fields)


@pytest.mark.asyncio
async def test_provisioner_client_posts_action():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(202, json={"accepted": True})

    client = ProvisionerClient(
        _settings(
            provisioner_endpoint="https://provisioner.internal/api/",
            provisioner_auth_token="secret-token",
        ),
        transport=httpx.MockTransport(handler),
    )

    await client.apply("host-1", CleanupAction.DECOMMISSION)

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://provisioner.internal/api/hosts/host-1/decommission"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert json.loads(request.content) == {"host_id": "host-1", "action": "decommission"}


@pytest.mark.asyncio
async def test_provisioner_client_raises_on_error_status():
    client = ProvisionerClient(
        _settings(provisioner_endpoint="https://provisioner.internal"),
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )

    with pytest.raises(ProvisionerError) as exc_info:
        await client.apply("host-1", CleanupAction.TERMINATE)

    assert exc_info.value.reason == "HTTP 503"
    assert exc_info.value.action == "terminate"


@pytest.mark.asyncio
async def test_provisioner_client_wraps_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = ProvisionerClient(
        _settings(provisioner_endpoint="https://provisioner.internal"),
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(ProvisionerError) as exc_info:
        await client.apply("host-1", CleanupAction.TERMINATE)

    assert "connection refused" in exc_info.value.reason


@pytest.mark.asyncio
async def test_provisioner_client_requires_endpoint():
    client = ProvisionerClient(_settings())

    with pytest.raises(ProvisionerNotConfigured):
        await client.apply("host-1", CleanupAction.TERMINATE)


@pytest.mark.asyncio
async def test_webhook_sender_posts_notification_payload():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    sender = WebhookNotificationSender(
        _settings(notification_webhook_url="https://relay.internal/notify"),
        transport=httpx.MockTransport(handler),
    )
    notification = Notification(
        recipient="alice@example.com",
        subject="Spawn host spawn-1 expires in less than 2 hours",
        body="...",
        kind=NotificationKind.SPAWN_HOST_EXPIRATION,
        host_id="spawn-1",
    )

    await sender.send(notification)

    assert str(requests[0].url) == "https://relay.internal/notify"
    assert "Authorization" not in requests[0].headers
    assert json.loads(requests[0].content) == {
        "recipient": "alice@example.com",
        "subject": "Spawn host spawn-1 expires in less than 2 hours",
        "body": "...",
        "kind": "spawn_host_expiration",
        "host_id": "spawn-1",
    }


@pytest.mark.asyncio
async def test_webhook_sender_raises_on_rejection():
    sender = WebhookNotificationSender(
        _settings(notification_webhook_url="https://relay.internal/notify"),
        transport=httpx.MockTransport(lambda request: httpx.Response(400)),
    )
    notification = Notification(
        recipient="ops@example.com",
        subject="s",
        body="b",
        kind=NotificationKind.SLOW_PROVISIONING,
    )

    with pytest.raises(httpx.HTTPStatusError):
        await sender.send(notification)


@pytest.mark.asyncio
async def test_webhook_sender_requires_url():
    sender = WebhookNotificationSender(_settings())
    notification = Notification(
        recipient="ops@example.com",
        subject="s",
        body="b",
        kind=NotificationKind.SLOW_PROVISIONING,
    )

    with pytest.raises(DeliveryNotConfigured):
        await sender.send(notification)


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    breaker = CircuitBreaker("provisioner", CircuitBreakerConfig(failure_threshold=2))
    calls = 0

    async def failing():
        nonlocal calls
        calls += 1
        raise ConnectionError("provisioner down")

    for _ in range(2):
        with pytest.raises(ConnectionError):
            await breaker.call(failing)

    assert breaker.state == CircuitState.OPEN

    with pytest.raises(CircuitBreakerOpen):
        await breaker.call(failing)
    assert calls == 2


@pytest.mark.asyncio
async def test_circuit_closes_after_recovery():
    breaker = CircuitBreaker(
        "webhook",
        CircuitBreakerConfig(failure_threshold=1, timeout_seconds=0, success_threshold=2),
    )

    async def failing():
        raise ConnectionError("down")

    async def healthy():
        return "ok"

    with pytest.raises(ConnectionError):
        await breaker.call(failing)
    assert breaker.state == CircuitState.OPEN

    assert await breaker.call(healthy) == "ok"
    assert breaker.state == CircuitState.HALF_OPEN
    assert await breaker.call(healthy) == "ok"
    assert breaker.state == CircuitState.CLOSED
    assert breaker.stats.total_failures == 1


@pytest.mark.asyncio
async def test_open_circuit_surfaces_as_provisioner_failure():
    """An open breaker fails the call without reaching the service."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(500)

    client = ProvisionerClient(
        _settings(
            provisioner_endpoint="https://provisioner.internal",
            circuit_breaker_enabled=True,
            circuit_breaker_failure_threshold=1,
        ),
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(ProvisionerError):
        await client.apply("host-1", CleanupAction.TERMINATE)
    with pytest.raises(CircuitBreakerOpen):
        await client.apply("host-2", CleanupAction.TERMINATE)
    assert calls == 1


def test_build_circuit_breaker_respects_setting():
    assert build_circuit_breaker("provisioner", _settings()) is None

    breaker = build_circuit_breaker(
        "provisioner",
        _settings(circuit_breaker_enabled=True, circuit_breaker_failure_threshold=7),
    )
    assert breaker.config.failure_threshold == 7


def _host(host_name: str) -> Host:
    return Host(
        id="host-1",
        host_name=host_name,
        distro_id="ubuntu2204-large",
        creation_time=utc_now() - timedelta(hours=1),
    )


@pytest.mark.asyncio
async def test_tcp_prober_reaches_listening_port():
    async def accept(reader, writer):
        writer.close()

    server = await asyncio.start_server(accept, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    prober = TcpReachabilityProber(timeout_seconds=2.0)

    try:
        assert await prober.is_reachable(_host("127.0.0.1"), Distro(id="d", ssh_port=port))
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_tcp_prober_reports_closed_port_and_missing_name():
    server = await asyncio.start_server(lambda reader, writer: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()

    prober = TcpReachabilityProber(timeout_seconds=2.0)

    assert not await prober.is_reachable(_host("127.0.0.1"), Distro(id="d", ssh_port=port))
    assert not await prober.is_reachable(_host(""), None)
