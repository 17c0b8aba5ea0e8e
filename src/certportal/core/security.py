"""
Security Utilities

Password hashing and session token helpers.

- Passwords are hashed with bcrypt (random per-hash salt, adaptive cost).
- Verification uses bcrypt.checkpw, which compares in constant time.
- Session tokens are random URL-safe strings; only their SHA-256 hash is stored.
"""

import hashlib
import logging
import secrets
from functools import lru_cache

import bcrypt

from certportal.core.config import settings

logger = logging.getLogger(__name__)

SESSION_TOKEN_LENGTH = 32  # 256 bits of entropy when using token_urlsafe

# bcrypt only looks at the first 72 bytes of the input
_BCRYPT_MAX_BYTES = 72


# Used to keep login timing uniform when the username does not exist
@lru_cache
def _dummy_hash(rounds: int) -> bytes:
    """A throwaway hash with the same cost as real password hashes."""
    return bcrypt.hashpw(b"certportal-timing-equaliser", bcrypt.gensalt(rounds=rounds))


def _encode_password(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """
    Hash a password for storage.

    Args:
        password: Plain text password

    Returns:
        bcrypt hash string (salt and cost are embedded)
    """
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode_password(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Check a plain text password against a stored hash.

    Returns False for missing or malformed hashes instead of raising.
    """
    if not password_hash:
        bcrypt.checkpw(_encode_password(password), _dummy_hash(settings.bcrypt_rounds))
        return False

    try:
        return bcrypt.checkpw(_encode_password(password), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def generate_session_token() -> str:
    """Generate an opaque, cryptographically secure session token."""
    return secrets.token_urlsafe(SESSION_TOKEN_LENGTH)


def hash_token(token: str) -> str:
    """
    Hash a token for storage using SHA-256.

    Tokens are hashed before storage so a database leak does not expose
    live session cookies.
    """
    return hashlib.sha256(token.encode()).hexdigest()
