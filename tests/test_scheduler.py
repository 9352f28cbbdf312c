"""Tests for the fixed-interval scheduler loop."""

from unittest.mock import AsyncMock, MagicMock, PropertyMock

import pytest

from postmonitor.models import RunSummary
from postmonitor.scheduler import run_once, run_scheduler


def fake_orchestrator(busy=False, error=None):
    orchestrator = MagicMock()
    type(orchestrator).is_busy = PropertyMock(return_value=busy)
    orchestrator.run = AsyncMock(return_value=RunSummary(run_id="r1", error=error))
    return orchestrator


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_skips_when_a_run_is_in_progress(self):
        orchestrator = fake_orchestrator(busy=True)
        await run_once(orchestrator, "schedule")
        orchestrator.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self):
        orchestrator = fake_orchestrator()
        orchestrator.run.side_effect = RuntimeError("browser crashed")
        await run_once(orchestrator, "schedule")
        orchestrator.run.assert_awaited_once_with(trigger="schedule")


class TestRunScheduler:
    @pytest.mark.asyncio
    async def test_startup_run_then_ticks(self, fake_sleep):
        orchestrator = fake_orchestrator()
        await run_scheduler(orchestrator, interval_s=3600, run_on_start=True, max_ticks=2, sleep=fake_sleep)

        triggers = [c.kwargs["trigger"] for c in orchestrator.run.await_args_list]
        assert triggers == ["startup", "schedule", "schedule"]
        assert [c.args[0] for c in fake_sleep.await_args_list] == [3600, 3600]

    @pytest.mark.asyncio
    async def test_without_startup_run(self, fake_sleep):
        orchestrator = fake_orchestrator(error="auth_failed:no_session_material")
        await run_scheduler(orchestrator, interval_s=60, run_on_start=False, max_ticks=1, sleep=fake_sleep)
        orchestrator.run.assert_awaited_once_with(trigger="schedule")
