"""
Unit tests for the job registry and scheduler lifecycle.
"""

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from certportal.core import scheduler


@pytest.fixture(autouse=True)
def empty_registry():
    scheduler.clear_registry()
    yield
    scheduler.clear_registry()


async def _sweep():
    return {"found": 0}


async def _broken():
    raise RuntimeError("boom")


class TestManualTrigger:
    @pytest.mark.asyncio
    async def test_returns_job_result(self):
        scheduler.register_job("sweep", _sweep, IntervalTrigger(minutes=5))

        outcome = await scheduler.trigger_job_manually("sweep")

        assert outcome["status"] == "success"
        assert outcome["result"] == {"found": 0}

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self):
        scheduler.register_job("broken", _broken, IntervalTrigger(minutes=5))

        outcome = await scheduler.trigger_job_manually("broken")

        assert outcome["status"] == "error"
        assert outcome["error"] == "boom"

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        with pytest.raises(ValueError):
            await scheduler.trigger_job_manually("missing")


class TestRegistry:
    def test_jobs_listed_as_paused_before_start(self):
        scheduler.register_job("sweep", _sweep, IntervalTrigger(minutes=5))

        assert scheduler.list_registered_jobs() == [
            {"job_id": "sweep", "next_run_time": None, "is_paused": True}
        ]

    def test_pause_unknown_job(self):
        assert scheduler.pause_job("missing") is False
        assert scheduler.resume_job("missing") is False


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_schedules_registered_jobs(self):
        scheduler.register_job("sweep", _sweep, IntervalTrigger(minutes=5))

        await scheduler.start_scheduler()
        try:
            (job,) = scheduler.list_registered_jobs()
            assert job["next_run_time"] is not None
            assert job["is_paused"] is False

            assert scheduler.pause_job("sweep") is True
            assert scheduler.list_registered_jobs()[0]["is_paused"] is True
            assert scheduler.resume_job("sweep") is True
        finally:
            await scheduler.stop_scheduler()

        assert scheduler.get_scheduler() is None
