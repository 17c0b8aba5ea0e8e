"""
Certificates Router

- GET /certificates - List the caller's certificates
- GET /certificates/{certificate_id} - Get one of the caller's certificates
- GET /verify-certificate/{certificate_id} - Public validity check

Certificate ids contain slashes (CASTE/2026/...), hence the path converter.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.auth import get_current_user
from certportal.core.database import get_db
from certportal.modules.certificates.schemas import (
    CertificateResponse,
    VerifyCertificateResponse,
)
from certportal.modules.certificates.service import CertificateService
from certportal.modules.shared import PortalServiceError, to_http_exception
from certportal.modules.users.models import User

router = APIRouter()
verify_router = APIRouter()


@router.get("", response_model=list[CertificateResponse], summary="List my certificates")
async def list_certificates(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[CertificateResponse]:
    certificates = await CertificateService(db).list_certificates(user.id)
    return [CertificateResponse.model_validate(cert) for cert in certificates]


@router.get(
    "/{certificate_id:path}",
    response_model=CertificateResponse,
    summary="Get my certificate",
)
async def get_certificate(
    certificate_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> CertificateResponse:
    try:
        certificate = await CertificateService(db).get_certificate(user.id, certificate_id)
    except PortalServiceError as e:
        raise to_http_exception(e) from e
    return CertificateResponse.model_validate(certificate)


@verify_router.get(
    "/{certificate_id:path}",
    response_model=VerifyCertificateResponse,
    summary="Verify a certificate",
)
async def verify_certificate(
    certificate_id: str,
    db: AsyncSession = Depends(get_db),
) -> VerifyCertificateResponse:
    """
    Public endpoint: is this certificate genuine and still in force?

    No authentication required. Returns only identifiers and dates.
    """
    try:
        return await CertificateService(db).verify_certificate(certificate_id)
    except PortalServiceError as e:
        raise to_http_exception(e) from e
