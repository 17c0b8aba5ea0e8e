"""
Authentication and Authorization Module

Provides authentication dependencies for FastAPI endpoints.
The session token travels in an HttpOnly cookie; it is resolved to a user
through the server-side session table on every request.

Role checks:
- get_current_user: any logged-in user (401 otherwise)
- get_current_official: logged-in user with the OFFICIAL role (403 otherwise)
"""

import logging
from datetime import datetime

from fastapi import Depends, HTTPException, Response, status
from fastapi.security import APIKeyCookie
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.config import settings
from certportal.core.database import get_db
from certportal.modules.auth.service import AuthService
from certportal.modules.users.models import User

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
session_cookie = APIKeyCookie(
    name=settings.session_cookie_name,
    auto_error=False,
    description="Opaque session token issued by /api/login",
)


def _not_authenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "NOT_AUTHENTICATED",
            "message": "Not authenticated",
        },
    )


def set_session_cookie(response: Response, token: str, expire: datetime) -> None:
    """Attach the session cookie to a response."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_hours * 3600,
        expires=expire,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    """Remove the session cookie from the client."""
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


async def get_optional_user(
    token: str | None = Depends(session_cookie),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Resolve the session cookie to a user, or None.

    Useful for endpoints that behave differently for logged-in callers.
    """
    if not token:
        return None
    return await AuthService(db).resolve_session(token)


async def get_current_user(
    user: User | None = Depends(get_optional_user),
) -> User:
    """
    FastAPI dependency that requires a valid session.

    Usage:
        @router.get("/endpoint")
        async def endpoint(user: User = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 401: If the cookie is missing, unknown, or expired
    """
    if user is None:
        raise _not_authenticated()
    return user


async def get_current_official(
    user: User = Depends(get_current_user),
) -> User:
    """
    FastAPI dependency for administrative endpoints.

    Raises:
        HTTPException 401: If not logged in
        HTTPException 403: If the user is not an official
    """
    if not user.is_official:
        logger.warning(
            f"Access denied: user {user.id} ({user.username}) has role '{user.role.value}', "
            "but 'official' is required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "OFFICIAL_ACCESS_REQUIRED",
                "message": "Official access is required for this endpoint.",
            },
        )

    logger.debug(f"Authenticated official: {user.id} ({user.username})")
    return user


__all__ = [
    "session_cookie",
    "set_session_cookie",
    "clear_session_cookie",
    "get_optional_user",
    "get_current_user",
    "get_current_official",
]
