"""
Certificate Schemas
"""

from datetime import datetime
from typing import Any

from certportal.modules.applications.models import CertificateType
from certportal.modules.shared.schemas import CamelModel


class CertificateResponse(CamelModel):
    """Issued certificate as seen by its holder."""

    id: int
    certificate_id: str
    application_pk: int
    user_id: int
    certificate_type: CertificateType
    issued_at: datetime
    valid_until: datetime
    certificate_data: dict[str, Any]


class VerifyCertificateResponse(CamelModel):
    """Public verification result. Carries no personal data."""

    is_valid: bool
    is_expired: bool
    certificate_id: str
    certificate_type: CertificateType
    issued_at: datetime
    valid_until: datetime
