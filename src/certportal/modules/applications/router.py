"""
Certificate Applications Router

Citizen-facing endpoints:
- POST /applications - Submit an application (verification runs after the response)
- GET /applications - List the caller's applications
- GET /applications/{application_id} - Get one of the caller's applications

Public endpoint:
- POST /track-application - Status lookup by application id and mobile number

Security:
- Tracking requires the applicant's mobile number and is rate limited per IP
- Tracking responses never include form data
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.auth import get_current_user
from certportal.core.database import get_db
from certportal.core.rate_limit import rate_limit
from certportal.modules.applications.jobs import verify_in_background
from certportal.modules.applications.schemas import (
    ApplicationCreate,
    ApplicationResponse,
    TrackApplicationRequest,
    TrackApplicationResponse,
)
from certportal.modules.applications.service import ApplicationWorkflow
from certportal.modules.shared import PortalServiceError, to_http_exception
from certportal.modules.users.models import User

logger = logging.getLogger(__name__)

router = APIRouter()
tracking_router = APIRouter()

RATE_LIMIT_TRACKING = (20, 60)  # 20 lookups per minute per IP


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a certificate application",
)
async def submit_application(
    data: ApplicationCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    """
    Submit a certificate application.

    The application is returned in PENDING. When documents are attached,
    auto-verification runs after the response and moves it to
    OFFICIAL_APPROVAL; poll GET /applications/{id} or /track-application.
    """
    try:
        application = await ApplicationWorkflow(db).submit_application(user.id, data)
    except PortalServiceError as e:
        raise to_http_exception(e) from e

    response = ApplicationResponse.model_validate(application)
    if application.document_ids:
        background_tasks.add_task(verify_in_background, application.id)
    return response


@router.get("", response_model=list[ApplicationResponse], summary="List my applications")
async def list_applications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[ApplicationResponse]:
    applications = await ApplicationWorkflow(db).list_applications(user.id)
    return [ApplicationResponse.model_validate(app) for app in applications]


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Get my application",
)
async def get_application(
    application_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    """
    Get an application by its public id.

    Raises:
        HTTPException 403: Application belongs to another user
        HTTPException 404: Unknown application id
    """
    try:
        application = await ApplicationWorkflow(db).get_application(user.id, application_id)
    except PortalServiceError as e:
        raise to_http_exception(e) from e
    return ApplicationResponse.model_validate(application)


@tracking_router.post(
    "",
    response_model=TrackApplicationResponse,
    summary="Track an application",
    dependencies=[Depends(rate_limit("track_application", *RATE_LIMIT_TRACKING))],
)
async def track_application(
    data: TrackApplicationRequest,
    db: AsyncSession = Depends(get_db),
) -> TrackApplicationResponse:
    """
    Public status lookup.

    Raises:
        HTTPException 403: Mobile number does not match the applicant's
        HTTPException 404: Unknown application id
        HTTPException 429: Too many lookups from this address
    """
    try:
        application = await ApplicationWorkflow(db).track_application(
            data.application_id, data.mobile_number
        )
    except PortalServiceError as e:
        raise to_http_exception(e) from e
    return TrackApplicationResponse.model_validate(application)
