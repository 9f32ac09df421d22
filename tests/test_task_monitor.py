"""
Task monitor tests.

Tasks whose agents stopped sending heartbeats are failed, their hosts are
released, and they are retried while their project allows it.
"""

from datetime import timedelta

import pytest

from fleetmon.errors import CleanupError, FlaggingError
from fleetmon.models import EventType, Project, TaskStatus
from fleetmon.monitor.policies import Policy
from fleetmon.monitor.runner import DEFAULT_TASK_FLAGGING_POLICIES
from fleetmon.monitor.task_flagging import flag_timed_out_heartbeats
from fleetmon.monitor.task_monitor import TaskMonitor
from fleetmon.observability.metrics import metrics

PROJECTS = {"mongodb": Project(identifier="mongodb", enabled=True)}


@pytest.mark.asyncio
async def test_flag_timed_out_heartbeats(store, add_task, test_settings, now):
    await add_task("silent", last_heartbeat=now - timedelta(minutes=8))
    await add_task("alive", last_heartbeat=now - timedelta(minutes=6))
    await add_task(
        "dispatched-never-started",
        status=TaskStatus.DISPATCHED,
        start_time=None,
        last_heartbeat=None,
        dispatch_time=now - timedelta(minutes=10),
    )
    await add_task(
        "dispatched-recently",
        status=TaskStatus.DISPATCHED,
        start_time=None,
        last_heartbeat=None,
        dispatch_time=now - timedelta(minutes=2),
    )
    await add_task("finished", status=TaskStatus.SUCCEEDED, last_heartbeat=now - timedelta(hours=1))
    await add_task(
        "queued",
        status=TaskStatus.UNDISPATCHED,
        dispatch_time=None,
        start_time=None,
        last_heartbeat=None,
    )

    flagged = await flag_timed_out_heartbeats(store, test_settings, now)

    assert [task.id for task in flagged] == ["dispatched-never-started", "silent"]


@pytest.mark.asyncio
async def test_timed_out_task_is_failed_released_and_retried(
    store, events, add_host, add_task, test_settings, now
):
    await add_host("host-1", running_task="task-1")
    await add_task("task-1", host_id="host-1", last_heartbeat=now - timedelta(minutes=10))

    monitor = TaskMonitor(store, events, DEFAULT_TASK_FLAGGING_POLICIES)
    errors = await monitor.cleanup_tasks(PROJECTS, test_settings, now)

    assert errors == []

    task = await store.tasks.get("task-1")
    assert task.status == TaskStatus.UNDISPATCHED
    assert task.execution == 1
    assert task.host_id is None
    assert task.dispatch_time is None
    assert task.last_heartbeat is None

    host = await store.hosts.get("host-1")
    assert host.running_task is None
    assert host.last_task_completed_time == now

    history = await events.find_in_order("host-1")
    assert [event.event_type for event in history] == [EventType.HOST_RUNNING_TASK_CLEARED]
    assert history[0].data.task_id == "task-1"
    assert metrics.counter_value("monitor.tasks.cleaned") == 1


@pytest.mark.asyncio
async def test_task_out_of_executions_stays_failed(
    store, events, add_task, test_settings, now
):
    await add_task("task-1", execution=2, last_heartbeat=now - timedelta(minutes=10))

    monitor = TaskMonitor(store, events, DEFAULT_TASK_FLAGGING_POLICIES)
    errors = await monitor.cleanup_tasks(PROJECTS, test_settings, now)

    assert errors == []
    task = await store.tasks.get("task-1")
    assert task.status == TaskStatus.FAILED
    assert task.execution == 2
    assert task.finish_time == now
    assert task.details.type == "system"
    assert task.details.description == "heartbeat"
    assert task.details.timed_out is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "projects",
    [
        {},
        {"mongodb": Project(identifier="mongodb", enabled=False)},
    ],
    ids=["unresolved-project", "disabled-project"],
)
async def test_task_of_inactive_project_is_not_retried(
    store, events, add_task, test_settings, now, projects
):
    await add_task("task-1", last_heartbeat=now - timedelta(minutes=10))

    monitor = TaskMonitor(store, events, DEFAULT_TASK_FLAGGING_POLICIES)
    errors = await monitor.cleanup_tasks(projects, test_settings, now)

    assert errors == []
    task = await store.tasks.get("task-1")
    assert task.status == TaskStatus.FAILED
    assert task.execution == 0


@pytest.mark.asyncio
async def test_host_running_another_task_is_left_alone(
    store, events, add_host, add_task, test_settings, now
):
    await add_host("host-1", running_task="task-2")
    await add_task("task-1", host_id="host-1", last_heartbeat=now - timedelta(minutes=10))

    monitor = TaskMonitor(store, events, DEFAULT_TASK_FLAGGING_POLICIES)
    errors = await monitor.cleanup_tasks(PROJECTS, test_settings, now)

    assert errors == []
    host = await store.hosts.get("host-1")
    assert host.running_task == "task-2"
    assert await events.find_in_order("host-1") == []


@pytest.mark.asyncio
async def test_one_failing_task_does_not_block_others(
    store, events, add_task, test_settings, now, monkeypatch
):
    """
    Five silent tasks; marking task-2 failed blows up. The other four are
    cleaned up and exactly one error names task-2.
    """
    for i in range(5):
        await add_task(f"task-{i}", execution=2, last_heartbeat=now - timedelta(minutes=10))

    original_mark_failed = store.tasks.mark_failed

    async def flaky_mark_failed(task_id, details, now=None):
        if task_id == "task-2":
            raise RuntimeError("connection reset")
        return await original_mark_failed(task_id, details, now)

    monkeypatch.setattr(store.tasks, "mark_failed", flaky_mark_failed)

    monitor = TaskMonitor(store, events, DEFAULT_TASK_FLAGGING_POLICIES)
    errors = await monitor.cleanup_tasks(PROJECTS, test_settings, now)

    assert len(errors) == 1
    assert isinstance(errors[0], CleanupError)
    assert errors[0].resource_kind == "task"
    assert errors[0].resource_id == "task-2"

    for i in (0, 1, 3, 4):
        assert (await store.tasks.get(f"task-{i}")).status == TaskStatus.FAILED
    assert (await store.tasks.get("task-2")).status == TaskStatus.RUNNING
    assert metrics.counter_value("monitor.tasks.cleanup_failed") == 1


@pytest.mark.asyncio
async def test_failing_policy_is_reported_and_others_still_run(
    store, events, add_task, test_settings, now
):
    await add_task("task-1", execution=2, last_heartbeat=now - timedelta(minutes=10))

    async def broken_policy(store, settings, now):
        raise RuntimeError("query timed out")

    monitor = TaskMonitor(
        store,
        events,
        [Policy("broken", broken_policy), *DEFAULT_TASK_FLAGGING_POLICIES],
    )
    errors = await monitor.cleanup_tasks(PROJECTS, test_settings, now)

    assert len(errors) == 1
    assert isinstance(errors[0], FlaggingError)
    assert errors[0].policy == "broken"
    assert (await store.tasks.get("task-1")).status == TaskStatus.FAILED


@pytest.mark.asyncio
async def test_task_flagged_twice_is_cleaned_up_once(
    store, events, add_task, test_settings, now
):
    await add_task("task-1", execution=2, last_heartbeat=now - timedelta(minutes=10))

    monitor = TaskMonitor(
        store,
        events,
        [
            Policy("heartbeats", flag_timed_out_heartbeats),
            Policy("heartbeats-again", flag_timed_out_heartbeats),
        ],
    )
    errors = await monitor.cleanup_tasks(PROJECTS, test_settings, now)

    assert errors == []
    assert metrics.counter_value("monitor.tasks.cleaned") == 1


@pytest.mark.asyncio
async def test_second_pass_changes_nothing(
    store, events, add_host, add_task, test_settings, now
):
    await add_host("host-1", running_task="task-1")
    await add_task("task-1", host_id="host-1", last_heartbeat=now - timedelta(minutes=10))
    monitor = TaskMonitor(store, events, DEFAULT_TASK_FLAGGING_POLICIES)

    assert await monitor.cleanup_tasks(PROJECTS, test_settings, now) == []
    after_first = await store.tasks.get("task-1")

    assert await monitor.cleanup_tasks(PROJECTS, test_settings, now) == []
    after_second = await store.tasks.get("task-1")

    assert after_second == after_first
    assert len(await events.find_in_order("host-1")) == 1
