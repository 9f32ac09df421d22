"""Task monitor - fails tasks flagged by the task flagging policies."""

import logging
from datetime import datetime
from typing import Sequence

from fleetmon.config import Settings
from fleetmon.db.store import FleetStore
from fleetmon.errors import CleanupError, FlaggingError, MonitorError
from fleetmon.events import EventLog
from fleetmon.models import Project, Task
from fleetmon.monitor.cleanup import cleanup_timed_out_task
from fleetmon.monitor.policies import TaskFlaggingPolicy
from fleetmon.observability.metrics import metrics
from fleetmon.utils.time import utc_now

logger = logging.getLogger("fleetmon.monitor.tasks")


class TaskMonitor:
    """Runs task flagging policies and cleans up every task they return."""

    def __init__(
        self,
        store: FleetStore,
        events: EventLog,
        flagging_policies: Sequence[TaskFlaggingPolicy],
    ):
        self.store = store
        self.events = events
        self.flagging_policies = tuple(flagging_policies)

    async def cleanup_tasks(
        self,
        projects: dict[str, Project],
        settings: Settings,
        now: datetime | None = None,
    ) -> list[MonitorError]:
        """
        Evaluate every policy and clean up what it flags.

        Failures are collected, never raised: a failing policy skips only its
        own tasks and a failing task skips only itself. A task flagged by
        several policies is cleaned up once.
        """
        now = now or utc_now()
        errors: list[MonitorError] = []
        handled: set[str] = set()

        for policy in self.flagging_policies:
            try:
                async with self.store.savepoint():
                    tasks = await policy.evaluate(self.store, settings, now)
            except Exception as e:
                logger.error(f"Error running task flagging policy {policy.name}: {e}")
                errors.append(FlaggingError("task monitor", policy.name, e))
                continue

            if tasks:
                logger.info(f"Policy {policy.name} flagged {len(tasks)} tasks")
            metrics.inc_counter("monitor.tasks.flagged", len(tasks))

            for task in tasks:
                if task.id in handled:
                    continue
                handled.add(task.id)

                error = await self._cleanup(task, projects, settings, now)
                if error:
                    errors.append(error)

        return errors

    async def _cleanup(
        self,
        task: Task,
        projects: dict[str, Project],
        settings: Settings,
        now: datetime,
    ) -> CleanupError | None:
        try:
            async with self.store.savepoint():
                await cleanup_timed_out_task(self.store, self.events, task, projects, settings, now)
        except Exception as e:
            logger.error(f"Error cleaning up task {task.id}: {e}", extra=task.to_log_context())
            metrics.inc_counter("monitor.tasks.cleanup_failed")
            return CleanupError("task", task.id, "cleaning up", e)

        metrics.inc_counter("monitor.tasks.cleaned")
        return None
