"""
Certificate Applications Admin Router

Endpoints for officials deciding on applications.
All endpoints require a session with the official role.

Endpoints:
- POST /admin/approve-application - Approve and issue the certificate
- POST /admin/reject-application - Reject with a reason

Security:
- Session with official role required (401 / 403 otherwise)
- Audit logging for every decision
- Per-official rate limiting on decision endpoints
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.auth import get_current_official
from certportal.core.database import get_db
from certportal.core.rate_limit import RateLimitExceeded, check_rate_limit
from certportal.modules.applications.schemas import (
    ApplicationResponse,
    ApproveApplicationRequest,
    RejectApplicationRequest,
)
from certportal.modules.applications.service import ApplicationWorkflow
from certportal.modules.certificates.schemas import CertificateResponse
from certportal.modules.shared import PortalServiceError, to_http_exception
from certportal.modules.users.models import User

logger = logging.getLogger(__name__)

router = APIRouter()

# Rate limits for decision endpoints
RATE_LIMIT_APPROVE = (30, 60)  # 30 approvals per minute
RATE_LIMIT_REJECT = (30, 60)  # 30 rejections per minute


async def _check_official_rate_limit(
    official: User,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Check rate limit for an official's action.

    Raises:
        RateLimitExceeded: If rate limit is exceeded
    """
    key = f"admin:{action}:{official.id}"
    allowed = await check_rate_limit(key, limit, window_seconds)

    if not allowed:
        logger.warning(
            f"Rate limit exceeded for official {official.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


@router.post(
    "/approve-application",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Approve an application",
    responses={
        200: {"description": "Already approved; existing certificate returned"},
        404: {"description": "Application not found"},
        409: {"description": "Application is not awaiting official approval"},
    },
)
async def approve_application(
    data: ApproveApplicationRequest,
    response: Response,
    official: User = Depends(get_current_official),
    db: AsyncSession = Depends(get_db),
) -> CertificateResponse:
    """
    Approve an application and issue its certificate.

    Only applications in OFFICIAL_APPROVAL can be approved. Approving an
    application that is already COMPLETED returns its certificate with
    HTTP 200 instead of issuing a second one.
    """
    await _check_official_rate_limit(official, "approve", *RATE_LIMIT_APPROVE)

    try:
        certificate, created = await ApplicationWorkflow(db).approve_application(
            data.application_id, official
        )
    except PortalServiceError as e:
        raise to_http_exception(e) from e

    if not created:
        response.status_code = status.HTTP_200_OK

    logger.info(
        f"AUDIT: Official {official.id} ({official.username}) approved "
        f"{data.application_id}, certificate {certificate.certificate_id}"
    )
    return CertificateResponse.model_validate(certificate)


@router.post(
    "/reject-application",
    response_model=ApplicationResponse,
    summary="Reject an application",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is already completed or rejected"},
    },
)
async def reject_application(
    data: RejectApplicationRequest,
    official: User = Depends(get_current_official),
    db: AsyncSession = Depends(get_db),
) -> ApplicationResponse:
    """Reject an application from any non-terminal status."""
    await _check_official_rate_limit(official, "reject", *RATE_LIMIT_REJECT)

    try:
        application = await ApplicationWorkflow(db).reject_application(
            data.application_id, official, data.reason
        )
    except PortalServiceError as e:
        raise to_http_exception(e) from e

    logger.info(
        f"AUDIT: Official {official.id} ({official.username}) rejected {data.application_id}"
    )
    return ApplicationResponse.model_validate(application)
