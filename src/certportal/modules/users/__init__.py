"""
Users module - Citizen and official accounts.
"""

from certportal.modules.users.models import User, UserRole
from certportal.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "UserRepository"]
