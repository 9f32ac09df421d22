"""
Pytest fixtures for fleetmon tests.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Ensure test config is set before importing fleetmon modules.
os.environ.setdefault("FLEETMON_ENV", "development")
os.environ.setdefault(
    "FLEETMON_DATABASE_URL",
    os.getenv(
        "FLEETMON_TEST_DATABASE_URL",
        "sqlite+aiosqlite:///./fleetmon_test.db",
    ),
)

from fleetmon.config import Settings, settings
from fleetmon.db.base import Base, create_engine
from fleetmon.db.store import FleetStore
import fleetmon.db.base as db_base
import fleetmon.db.tables  # noqa: F401
from fleetmon.errors import ProvisionerError
from fleetmon.events import EventLog, MonotonicClock
from fleetmon.models import CleanupAction, Distro, Host, HostStatus, Notification, Task, TaskStatus
from fleetmon.observability.metrics import metrics

pytest_plugins = ("pytest_asyncio",)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _ensure_test_database_url(database_url: str) -> None:
    if "test" not in database_url:
        raise RuntimeError(
            "Refusing to run fleetmon tests against a non-test database. "
            "Set FLEETMON_TEST_DATABASE_URL to a dedicated test database."
        )


@pytest.fixture
async def engine(tmp_path):
    """Create a test engine with a fresh schema and wire it into fleetmon.db.base."""
    database_url = settings.database_url
    if database_url.startswith("sqlite"):
        database_url = f"sqlite+aiosqlite:///{tmp_path / 'fleetmon_test.db'}"
    _ensure_test_database_url(database_url)

    engine = create_engine(database_url)

    # Override global engine/session factory used by init_db/get_session.
    db_base.engine = engine
    db_base.async_session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    """Provide a database session per test."""
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(session) -> FleetStore:
    return FleetStore(session)


@pytest.fixture
def events(store) -> EventLog:
    return EventLog(store.events, MonotonicClock())


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        admin_recipients=["ops@example.com"],
        circuit_breaker_enabled=False,
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def add_host(store, now):
    """Insert a host; running, free and an hour old unless overridden."""

    async def _add(host_id: str, **overrides) -> Host:
        fields = {
            "host_name": f"{host_id}.fleet.internal",
            "distro_id": "ubuntu2204-large",
            "provider": "ec2",
            "status": HostStatus.RUNNING,
            "creation_time": now - timedelta(hours=1),
            "provision_time": now - timedelta(minutes=55),
        }
        fields.update(overrides)
        return await store.hosts.create(Host(id=host_id, **fields))

    return _add


@pytest.fixture
def add_task(store, now):
    """Insert a running task with a fresh heartbeat unless overridden."""

    async def _add(task_id: str, **overrides) -> Task:
        fields = {
            "display_name": "compile",
            "project": "mongodb",
            "distro_id": "ubuntu2204-large",
            "status": TaskStatus.RUNNING,
            "dispatch_time": now - timedelta(minutes=30),
            "start_time": now - timedelta(minutes=29),
            "last_heartbeat": now - timedelta(minutes=1),
        }
        fields.update(overrides)
        return await store.tasks.create(Task(id=task_id, **fields))

    return _add


@pytest.fixture
def add_distro(store):
    async def _add(distro_id: str, **overrides) -> Distro:
        fields = {"provider": "ec2", "pool_size": 0}
        fields.update(overrides)
        return await store.distros.create(Distro(id=distro_id, **fields))

    return _add


class FakeProvisioner:
    """Records applied actions; fails for host ids in fail_for."""

    def __init__(self):
        self.calls: list[tuple[str, CleanupAction]] = []
        self.fail_for: set[str] = set()

    async def apply(self, host_id: str, action: CleanupAction) -> None:
        if host_id in self.fail_for:
            raise ProvisionerError(host_id, action.value, "HTTP 503")
        self.calls.append((host_id, action))


class FakeSender:
    """Collects delivered notifications; fails for recipients in fail_for."""

    def __init__(self):
        self.sent: list[Notification] = []
        self.fail_for: set[str] = set()

    async def send(self, notification: Notification) -> None:
        if notification.recipient in self.fail_for:
            raise ConnectionError(f"mail relay rejected {notification.recipient}")
        self.sent.append(notification)


class FakeProber:
    """Hosts are reachable unless listed in unreachable; ids in broken raise."""

    def __init__(self):
        self.probed: list[str] = []
        self.unreachable: set[str] = set()
        self.broken: set[str] = set()

    async def is_reachable(self, host: Host, distro: Distro | None) -> bool:
        self.probed.append(host.id)
        if host.id in self.broken:
            raise OSError(f"probe for {host.id} failed")
        return host.id not in self.unreachable


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()
