"""
Entry point tests.
"""

import pytest

from fleetmon import main as main_module
from fleetmon.errors import CleanupError, FleetLoadError
from fleetmon.monitor.runner import MonitoringReport


@pytest.mark.asyncio
async def test_run_once_on_empty_database(engine, test_settings):
    """One pass over an empty fleet needs no provisioner, webhook or probes."""
    report = await main_module.run_once(test_settings)

    assert report.errors == []


def test_main_exits_nonzero_on_fatal_load_error(monkeypatch):
    async def failing_run_once():
        raise FleetLoadError("distros", ConnectionError("database unavailable"))

    monkeypatch.setattr(main_module, "run_once", failing_run_once)

    with pytest.raises(SystemExit) as exc_info:
        main_module.main()

    assert exc_info.value.code == 1


def test_main_returns_normally_when_run_has_item_errors(monkeypatch):
    async def run_with_errors():
        report = MonitoringReport(trace_id="abc123")
        report.task_errors.append(
            CleanupError("task", "task-1", "cleaning up", RuntimeError("boom"))
        )
        return report

    monkeypatch.setattr(main_module, "run_once", run_with_errors)

    main_module.main()
