"""
Document Schemas

Upload requests carry the file as a base64 string. Responses never include
the file body.
"""

from datetime import datetime
from typing import Any

from pydantic import Field

from certportal.modules.documents.models import VerificationStatus
from certportal.modules.shared.schemas import CamelModel


class DocumentUploadRequest(CamelModel):
    """Upload request. ``file_data`` may be a bare base64 string or a data URL."""

    document_type: str = Field(..., min_length=1, max_length=100)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_data: str = Field(..., min_length=1)


class DocumentSummary(CamelModel):
    """Document metadata without the file body."""

    id: int
    user_id: int
    document_type: str
    file_name: str
    uploaded_at: datetime
    verification_status: VerificationStatus
    verification_details: dict[str, Any] | None = None
