"""
Certificate Service

Holder-scoped certificate reads and public verification.
"""

import logging
from datetime import datetime

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.modules.certificates.models import Certificate
from certportal.modules.certificates.repository import CertificateRepository
from certportal.modules.certificates.schemas import VerifyCertificateResponse
from certportal.modules.shared import ForbiddenError, PortalServiceError, utcnow

logger = logging.getLogger(__name__)


class CertificateNotFoundError(PortalServiceError):
    """Raised when a certificate doesn't exist."""

    def __init__(self, certificate_id: str):
        super().__init__(
            message="Certificate not found",
            error_code="CERTIFICATE_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.certificate_id = certificate_id


class CertificateService:
    """Certificate operations bound to one database session."""

    def __init__(self, db: AsyncSession, certificates: CertificateRepository | None = None):
        self.db = db
        self.certificates = certificates or CertificateRepository(db)

    async def list_certificates(self, user_id: int) -> list[Certificate]:
        return await self.certificates.list_for_user(user_id)

    async def get_certificate(self, user_id: int, certificate_id: str) -> Certificate:
        """
        Get one of the caller's certificates.

        Raises:
            CertificateNotFoundError: Unknown certificate id
            ForbiddenError: Certificate belongs to someone else
        """
        certificate = await self.certificates.get_by_certificate_id(certificate_id)
        if certificate is None:
            raise CertificateNotFoundError(certificate_id)
        if certificate.user_id != user_id:
            logger.warning(f"User {user_id} denied access to certificate {certificate_id}")
            raise ForbiddenError()
        return certificate

    async def verify_certificate(
        self, certificate_id: str, now: datetime | None = None
    ) -> VerifyCertificateResponse:
        """
        Check a certificate's validity window.

        A certificate is expired strictly after ``valid_until``; at the exact
        instant it is still valid.

        Raises:
            CertificateNotFoundError: Unknown certificate id
        """
        certificate = await self.certificates.get_by_certificate_id(certificate_id)
        if certificate is None:
            logger.info(f"Verification requested for unknown certificate {certificate_id}")
            raise CertificateNotFoundError(certificate_id)

        is_expired = (now or utcnow()) > certificate.valid_until
        return VerifyCertificateResponse(
            is_valid=not is_expired,
            is_expired=is_expired,
            certificate_id=certificate.certificate_id,
            certificate_type=certificate.certificate_type,
            issued_at=certificate.issued_at,
            valid_until=certificate.valid_until,
        )
