"""
User Repository

Database operations for user management.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


class UserRepository:
    """Repository for user database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        username: str,
        password_hash: str,
        full_name: str,
        email: str,
        mobile: str,
        national_id: str,
        address: str,
        role: UserRole = UserRole.CITIZEN,
    ) -> User:
        """
        Create a new user record.

        Args:
            username: Login name (unique)
            password_hash: Hashed password
            full_name: Display name
            email: Contact email
            mobile: Mobile number (used to gate public application tracking)
            national_id: National identity number
            address: Postal address
            role: User's role

        Returns:
            Created User instance
        """
        user = User(
            username=username,
            password_hash=password_hash,
            full_name=full_name,
            email=email,
            mobile=mobile,
            national_id=national_id,
            address=address,
            role=role,
            is_active=True,
        )

        self.db.add(user)
        await self.db.flush()

        logger.info(f"Created user: {user.id} - {user.username} ({user.role.value})")
        return user

    async def get_by_id(self, user_id: int) -> User | None:
        """Get a user by primary key."""
        return await self.db.get(User, user_id)

    async def get_by_username(self, username: str) -> User | None:
        """Get a user by username."""
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        """Check if a username is already registered."""
        return await self.get_by_username(username) is not None
