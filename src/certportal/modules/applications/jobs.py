"""
Certificate Applications Background Jobs

1. Post-submission auto-verification, run as a FastAPI background task
2. A periodic sweep that resumes verification for applications left in
   PENDING or DOCUMENT_VERIFICATION (crash, restart, failed task)

Design Principles:
- Jobs handle their own database sessions
- Verification is idempotent, so running it twice is harmless
- Individual application failures don't stop the sweep
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from certportal.core.config import settings
from certportal.core.database import async_session_maker
from certportal.core.scheduler import register_job
from certportal.modules.applications.service import ApplicationWorkflow

logger = logging.getLogger(__name__)

# Job IDs for registration and manual triggering
JOB_ID_RESUME_VERIFICATION = "applications_resume_verification"


async def verify_in_background(application_pk: int) -> None:
    """
    Auto-verify a freshly submitted application.

    Scheduled by the submit endpoint after the response is sent. Failures
    are logged; the resume sweep picks the application up later.
    """
    try:
        async with async_session_maker() as db:
            await ApplicationWorkflow(db).run_auto_verification(application_pk)
    except Exception as e:
        logger.error(
            f"Auto-verification failed for application {application_pk}: {e}",
            exc_info=True,
        )


async def resume_stuck_verifications() -> dict[str, Any]:
    """
    Resume auto-verification for applications stuck mid-way.

    Only applications older than the grace period are picked up, so a
    background task that is still running is left alone.

    Returns:
        Dict with counts: {"found": N, "completed": N, "failed": N}
    """
    threshold = datetime.now(UTC) - timedelta(minutes=settings.verification_retry_after_minutes)
    logger.info(f"Starting verification sweep (submitted before {threshold.isoformat()})")

    async with async_session_maker() as db:
        stats = await ApplicationWorkflow(db).resume_stuck_verifications(
            threshold, batch_size=settings.verification_sweep_batch_size
        )

    logger.info(
        f"Verification sweep completed. Found: {stats['found']}, "
        f"Completed: {stats['completed']}, Failed: {stats['failed']}"
    )
    return stats


def register_application_jobs() -> None:
    """
    Register application background jobs with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    interval = settings.verification_sweep_interval_minutes
    register_job(
        job_id=JOB_ID_RESUME_VERIFICATION,
        func=resume_stuck_verifications,
        trigger=IntervalTrigger(minutes=interval),
    )
    logger.info(f"Registered job: {JOB_ID_RESUME_VERIFICATION} (interval: {interval} minutes)")
