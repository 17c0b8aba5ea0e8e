"""
Core module - Configuration, database, security, and utilities.
"""

from certportal.core.config import get_settings, settings
from certportal.core.database import Base, close_db, get_db, init_db
from certportal.core.security import (
    generate_session_token,
    hash_password,
    hash_token,
    verify_password,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Security
    "hash_password",
    "verify_password",
    "generate_session_token",
    "hash_token",
]
