"""
Authentication Service Layer

Registration, credential checks and server-side session management.

Sessions:
- A random token (secrets.token_urlsafe) is handed to the client in a cookie
- Only the SHA-256 hash of the token is stored in user_sessions
- Sessions have an absolute lifetime (24 hours by default) from login
- Expired sessions are treated as absent and removed lazily, plus by an
  hourly cleanup job
"""

import logging
from datetime import datetime, timedelta

from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.config import settings
from certportal.core.security import (
    generate_session_token,
    hash_password,
    hash_token,
    verify_password,
)
from certportal.modules.auth.repository import SessionRepository
from certportal.modules.auth.schemas import RegisterRequest
from certportal.modules.shared import PortalServiceError, utcnow
from certportal.modules.users.models import User
from certportal.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


class UsernameTakenError(PortalServiceError):
    """Raised when registering a username that already exists."""

    def __init__(self, username: str):
        super().__init__(
            message=f"Username '{username}' is already taken",
            error_code="USERNAME_TAKEN",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class InvalidCredentialsError(PortalServiceError):
    """Raised when a username/password pair does not match."""

    def __init__(self):
        super().__init__(
            message="Invalid username or password.",
            error_code="INVALID_CREDENTIALS",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class AccountInactiveError(PortalServiceError):
    """Raised when a deactivated account tries to log in."""

    def __init__(self):
        super().__init__(
            message="Your account has been deactivated.",
            error_code="ACCOUNT_INACTIVE",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class AuthService:
    """Identity and session operations bound to one database session."""

    def __init__(
        self,
        db: AsyncSession,
        users: UserRepository | None = None,
        sessions: SessionRepository | None = None,
    ):
        self.db = db
        self.users = users or UserRepository(db)
        self.sessions = sessions or SessionRepository(db)

    async def register(self, data: RegisterRequest) -> User:
        """
        Create a citizen account.

        Raises:
            UsernameTakenError: If the username is already registered
        """
        if await self.users.username_exists(data.username):
            logger.warning(f"Registration rejected, username taken: {data.username}")
            raise UsernameTakenError(data.username)

        try:
            user = await self.users.create(
                username=data.username,
                password_hash=hash_password(data.password),
                full_name=data.full_name,
                email=data.email,
                mobile=data.mobile,
                national_id=data.national_id,
                address=data.address,
            )
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration of the same name
            await self.db.rollback()
            raise UsernameTakenError(data.username) from e

        logger.info(f"Registered user {user.id} ({user.username})")
        return user

    async def authenticate(self, username: str, password: str) -> User:
        """
        Check a username/password pair.

        Raises:
            InvalidCredentialsError: Unknown username or wrong password
            AccountInactiveError: Account has been deactivated
        """
        user = await self.users.get_by_username(username)

        if not user:
            # Run a hash check anyway so timing does not reveal unknown usernames
            verify_password(password, None)
            logger.warning(f"Login attempt for non-existent username: {username}")
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            logger.warning(f"Invalid password for user: {username}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"Login attempt for inactive account: {username}")
            raise AccountInactiveError()

        return user

    async def start_session(self, user: User) -> tuple[str, datetime]:
        """
        Open a session for an authenticated user.

        Returns:
            Tuple of (plain session token for the cookie, expiry time)
        """
        token = generate_session_token()
        expire = utcnow() + timedelta(hours=settings.session_ttl_hours)

        await self.sessions.create(hash_token(token), {"user_id": user.id}, expire)
        await self.db.commit()

        logger.info(f"Session started for user {user.id}")
        return token, expire

    async def resolve_session(self, token: str, now: datetime | None = None) -> User | None:
        """
        Resolve a session cookie to its user.

        Returns None for unknown, expired, or orphaned sessions.
        """
        now = now or utcnow()
        sid = hash_token(token)
        session = await self.sessions.get(sid)

        if session is None:
            return None

        if session.expire <= now:
            logger.info("Expired session presented, removing it")
            await self.sessions.delete(sid)
            await self.db.commit()
            return None

        user_id = session.user_id
        if user_id is None:
            return None

        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return user

    async def end_session(self, token: str) -> None:
        """Delete the session for a logout."""
        await self.sessions.delete(hash_token(token))
        await self.db.commit()

    async def purge_expired_sessions(self, now: datetime | None = None) -> int:
        """Delete all expired sessions. Returns the number removed."""
        removed = await self.sessions.delete_expired(now or utcnow())
        await self.db.commit()
        return removed
