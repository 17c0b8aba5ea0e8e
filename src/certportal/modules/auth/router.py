"""Authentication router: register, login, logout, current user."""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.auth import (
    clear_session_cookie,
    get_current_user,
    session_cookie,
    set_session_cookie,
)
from certportal.core.database import get_db
from certportal.core.rate_limit import rate_limit
from certportal.modules.auth.schemas import (
    LoginRequest,
    LogoutResponse,
    RegisterRequest,
    UserResponse,
)
from certportal.modules.auth.service import AuthService
from certportal.modules.shared import PortalServiceError, to_http_exception
from certportal.modules.users.models import User

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_LOGIN = (10, 60)  # 10 attempts per minute per IP


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a citizen account",
)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Create an account and log the new user in.

    Raises:
        HTTPException 400: Username already taken or invalid input
    """
    service = AuthService(db)
    try:
        user = await service.register(data)
        token, expire = await service.start_session(user)
    except PortalServiceError as e:
        raise to_http_exception(e) from e

    set_session_cookie(response, token, expire)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=UserResponse,
    summary="Log in with username and password",
    dependencies=[Depends(rate_limit("login", *RATE_LIMIT_LOGIN))],
)
async def login(
    credentials: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Authenticate and start a session.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
        HTTPException 429: Too many attempts
    """
    service = AuthService(db)
    try:
        user = await service.authenticate(credentials.username, credentials.password)
        token, expire = await service.start_session(user)
    except PortalServiceError as e:
        raise to_http_exception(e) from e

    set_session_cookie(response, token, expire)
    logger.info(f"User logged in: {user.username} (role: {user.role.value})")
    return UserResponse.model_validate(user)


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="End the current session",
)
async def logout(
    response: Response,
    _user: User = Depends(get_current_user),
    token: str | None = Depends(session_cookie),
    db: AsyncSession = Depends(get_db),
) -> LogoutResponse:
    """Delete the server-side session and clear the cookie."""
    if token:
        await AuthService(db).end_session(token)

    clear_session_cookie(response)
    return LogoutResponse()


@router.get(
    "/user",
    response_model=UserResponse,
    summary="Get the logged-in user",
)
async def current_user(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the user bound to the session cookie, or 401."""
    return UserResponse.model_validate(user)
