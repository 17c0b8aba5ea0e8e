"""
Session cleanup job.

Expired sessions are already ignored when presented; this hourly job keeps
the user_sessions table from growing without bound.
"""

import logging
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from certportal.core.config import settings
from certportal.core.database import async_session_maker
from certportal.core.scheduler import register_job
from certportal.modules.auth.service import AuthService

logger = logging.getLogger(__name__)

JOB_ID_PURGE_SESSIONS = "auth_purge_expired_sessions"


async def purge_expired_sessions() -> dict[str, Any]:
    async with async_session_maker() as db:
        removed = await AuthService(db).purge_expired_sessions()

    logger.info(f"Session cleanup completed. Removed: {removed}")
    return {"removed": removed}


def register_auth_jobs() -> None:
    hours = settings.session_cleanup_interval_hours
    register_job(
        job_id=JOB_ID_PURGE_SESSIONS,
        func=purge_expired_sessions,
        trigger=IntervalTrigger(hours=hours),
    )
    logger.info(f"Registered job: {JOB_ID_PURGE_SESSIONS} (interval: {hours} hour(s))")
