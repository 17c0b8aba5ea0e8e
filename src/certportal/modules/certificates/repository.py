"""
Certificate Repository

Database operations for issued certificates. Certificates are write-once:
there is no update or delete.
"""

from datetime import datetime

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.modules.applications.models import CertificateType
from certportal.modules.certificates.models import Certificate


class CertificateRepository:
    """Repository for certificate database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        certificate_id: str,
        application_pk: int,
        user_id: int,
        certificate_type: CertificateType,
        issued_at: datetime,
        valid_until: datetime,
        certificate_data: dict,
    ) -> Certificate:
        certificate = Certificate(
            certificate_id=certificate_id,
            application_pk=application_pk,
            user_id=user_id,
            certificate_type=certificate_type,
            issued_at=issued_at,
            valid_until=valid_until,
            certificate_data=certificate_data,
        )
        self.db.add(certificate)
        await self.db.flush()
        return certificate

    async def certificate_id_exists(self, certificate_id: str) -> bool:
        result = await self.db.execute(
            select(exists().where(Certificate.certificate_id == certificate_id))
        )
        return bool(result.scalar())

    async def get_by_certificate_id(self, certificate_id: str) -> Certificate | None:
        result = await self.db.execute(
            select(Certificate).where(Certificate.certificate_id == certificate_id)
        )
        return result.scalar_one_or_none()

    async def get_by_application_pk(self, application_pk: int) -> Certificate | None:
        result = await self.db.execute(
            select(Certificate).where(Certificate.application_pk == application_pk)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> list[Certificate]:
        """List a user's certificates, newest first."""
        result = await self.db.execute(
            select(Certificate)
            .where(Certificate.user_id == user_id)
            .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
        )
        return list(result.scalars().all())
