"""
Background Job Scheduler

Periodic task execution with APScheduler's AsyncIOScheduler, tied to the
FastAPI lifespan.

Design Principles:
- Every job may run twice without harm
- A failing run is logged; the schedule keeps going
- Jobs can be triggered manually for maintenance and debugging

Usage:
    from certportal.core.scheduler import register_job, start_scheduler, stop_scheduler

    # During startup, before start_scheduler():
    register_job("my_job", my_job, IntervalTrigger(hours=1))

    # In FastAPI lifespan:
    await start_scheduler()
    yield
    await stop_scheduler()
"""

import logging
from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

# Created by start_scheduler, cleared by stop_scheduler
_scheduler: AsyncIOScheduler | None = None

# job_id -> (function, trigger); the function is also used for manual runs
_job_registry: dict[str, tuple[JobFunc, BaseTrigger]] = {}


class SchedulerConfig:
    """Configuration for the background scheduler."""

    TIMEZONE = "UTC"

    JOB_DEFAULTS = {
        "coalesce": True,  # Combine missed executions into one
        "max_instances": 1,  # Never overlap runs of the same job
        "misfire_grace_time": 60 * 5,
    }


def _job_listener(event: JobExecutionEvent) -> None:
    """Log the outcome of every scheduled execution."""
    if event.exception:
        logger.error(
            f"Scheduled run of {event.job_id} raised: {event.exception}",
            exc_info=event.exception,
        )
    else:
        logger.info(f"Job {event.job_id} executed at {datetime.now(UTC).isoformat()}")


def get_scheduler() -> AsyncIOScheduler | None:
    return _scheduler


def _schedule(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    _scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True)
    logger.info(f"Scheduled job: {job_id}")


async def start_scheduler() -> AsyncIOScheduler:
    """
    Create and start the scheduler, scheduling every registered job.

    Must be called from inside the running event loop.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("start_scheduler called twice; reusing the running scheduler")
        return _scheduler

    logger.info("Starting scheduler")

    _scheduler = AsyncIOScheduler(
        timezone=SchedulerConfig.TIMEZONE,
        job_defaults=SchedulerConfig.JOB_DEFAULTS,
    )
    _scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    for job_id, (func, trigger) in _job_registry.items():
        _schedule(job_id, func, trigger)

    _scheduler.start()

    logger.info(f"Background job scheduler started with {len(_job_registry)} job(s)")
    return _scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler, waiting for running jobs to finish."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        logger.debug("stop_scheduler: scheduler is not running")
        return

    logger.info("Shutting down scheduler")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler shut down")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Register a job.

    Jobs registered before start_scheduler() are scheduled when it runs;
    jobs registered afterwards are scheduled immediately. Registering the
    same id again replaces the previous job.
    """
    _job_registry[job_id] = (func, trigger)

    if _scheduler is not None:
        _schedule(job_id, func, trigger)


def clear_registry() -> None:
    """Forget all registered jobs (used by tests)."""
    _job_registry.clear()


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job now, outside its schedule.

    Returns:
        Dict with job_id, status ("success" or "error"), executed_at, and
        either the job's return value under "result" or "error"

    Raises:
        ValueError: If job_id is not registered
    """
    if job_id not in _job_registry:
        raise ValueError(
            f"Unknown job {job_id!r}; registered: {sorted(_job_registry)}"
        )

    func, _trigger = _job_registry[job_id]
    executed_at = datetime.now(UTC)

    logger.info(f"Running job {job_id} on demand")

    try:
        result = await func()
    except Exception as e:
        logger.error(f"On-demand run of {job_id} failed: {e}", exc_info=True)
        return {
            "job_id": job_id,
            "status": "error",
            "executed_at": executed_at.isoformat(),
            "error": str(e),
        }

    logger.info(f"On-demand run of {job_id} finished")
    return {
        "job_id": job_id,
        "status": "success",
        "executed_at": executed_at.isoformat(),
        "result": result,
    }


def list_registered_jobs() -> list[dict[str, Any]]:
    """List registered jobs with their next run time and paused state."""
    jobs = []

    for job_id in _job_registry:
        job_info: dict[str, Any] = {"job_id": job_id, "next_run_time": None, "is_paused": True}

        if _scheduler is not None:
            scheduled_job = _scheduler.get_job(job_id)
            if scheduled_job and scheduled_job.next_run_time:
                job_info["next_run_time"] = scheduled_job.next_run_time.isoformat()
                job_info["is_paused"] = False

        jobs.append(job_info)

    return jobs


def pause_job(job_id: str) -> bool:
    """Pause a scheduled job. Returns False if it is not scheduled."""
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Cannot pause unscheduled job {job_id}")
        return False

    _scheduler.pause_job(job_id)
    logger.info(f"Job {job_id} paused")
    return True


def resume_job(job_id: str) -> bool:
    """Resume a paused job. Returns False if it is not scheduled."""
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Cannot resume unscheduled job {job_id}")
        return False

    _scheduler.resume_job(job_id)
    logger.info(f"Job {job_id} resumed")
    return True
