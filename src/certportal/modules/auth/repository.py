"""
Session Repository

Database operations for server-side login sessions.
"""

from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.modules.auth.models import UserSession


class SessionRepository:
    """Repository for session rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, sid: str, payload: dict, expire: datetime) -> UserSession:
        """Store a new session."""
        session = UserSession(sid=sid, sess=payload, expire=expire)
        self.db.add(session)
        await self.db.flush()
        return session

    async def get(self, sid: str) -> UserSession | None:
        """Get a session by its hashed id."""
        return await self.db.get(UserSession, sid)

    async def delete(self, sid: str) -> None:
        """Delete a single session (logout or lazy expiry)."""
        await self.db.execute(delete(UserSession).where(UserSession.sid == sid))

    async def delete_expired(self, now: datetime) -> int:
        """
        Delete every session whose expiry has passed.

        Returns:
            Number of rows removed
        """
        result = await self.db.execute(delete(UserSession).where(UserSession.expire <= now))
        return result.rowcount or 0
