"""
Session Models

Server-side login sessions. The cookie carries an opaque token; only its
SHA-256 hash is stored here as the session id.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from certportal.core.database import Base


class UserSession(Base):
    """A login session keyed by the hashed session token."""

    __tablename__ = "user_sessions"

    sid: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Session payload, e.g. {"user_id": 42}
    sess: Mapped[dict] = mapped_column(JSON, nullable=False)

    expire: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_user_sessions_expire", "expire"),)

    @property
    def user_id(self) -> int | None:
        return self.sess.get("user_id")
