"""
Document Intake Service

Stores uploaded supporting documents and auto-verifies them.

Auto-verification is simulated: every upload is marked VERIFIED as soon as it
is stored. There is no content-type validation; the only policy is a
generous cap on the decoded size.
"""

import base64
import binascii
import logging

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.config import settings
from certportal.modules.documents.models import Document, VerificationStatus
from certportal.modules.documents.repository import DocumentRepository
from certportal.modules.documents.schemas import DocumentUploadRequest
from certportal.modules.shared import PortalServiceError

logger = logging.getLogger(__name__)

UPLOAD_VERIFICATION_DETAILS = {"message": "Document uploaded and auto-verified"}


class InvalidDocumentError(PortalServiceError):
    """Raised when the uploaded payload is not valid base64."""

    def __init__(self, message: str = "File data must be base64 encoded."):
        super().__init__(
            message=message,
            error_code="INVALID_DOCUMENT",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class DocumentTooLargeError(PortalServiceError):
    """Raised when the decoded file exceeds the transport cap."""

    def __init__(self, max_bytes: int):
        super().__init__(
            message=f"File exceeds the maximum size of {max_bytes // (1024 * 1024)} MiB.",
            error_code="DOCUMENT_TOO_LARGE",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )


def decoded_size(file_data: str) -> int:
    """
    Validate a base64 payload and return its decoded size in bytes.

    Accepts data URLs ("data:application/pdf;base64,....") as sent by
    browsers' FileReader.readAsDataURL.

    Raises:
        InvalidDocumentError: If the payload is not valid base64
    """
    payload = file_data.split(",", 1)[1] if file_data.startswith("data:") else file_data
    try:
        return len(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError) as e:
        raise InvalidDocumentError() from e


class DocumentService:
    """Document operations bound to one database session."""

    def __init__(self, db: AsyncSession, documents: DocumentRepository | None = None):
        self.db = db
        self.documents = documents or DocumentRepository(db)

    async def upload_document(self, user_id: int, data: DocumentUploadRequest) -> Document:
        """
        Store an uploaded document and auto-verify it.

        Raises:
            InvalidDocumentError: Payload is not base64
            DocumentTooLargeError: Decoded payload exceeds max_upload_bytes
        """
        size = decoded_size(data.file_data)
        if size > settings.max_upload_bytes:
            logger.warning(f"Upload rejected for user {user_id}: {size} bytes")
            raise DocumentTooLargeError(settings.max_upload_bytes)

        document = await self.documents.create(
            user_id=user_id,
            document_type=data.document_type,
            file_name=data.file_name,
            file_data=data.file_data,
        )
        await self.documents.update_verification(
            document, VerificationStatus.VERIFIED, UPLOAD_VERIFICATION_DETAILS
        )
        await self.db.commit()

        logger.info(
            f"Document {document.id} ({data.document_type}, {size} bytes) "
            f"uploaded and auto-verified for user {user_id}"
        )
        return document

    async def list_documents(self, user_id: int) -> list[Document]:
        """List a user's documents without file bodies."""
        return await self.documents.list_for_user(user_id)
