"""
Documents Router

- POST /documents - Upload a supporting document (base64 body)
- GET /documents - List the caller's documents (file bodies excluded)
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.core.auth import get_current_user
from certportal.core.database import get_db
from certportal.modules.documents.schemas import DocumentSummary, DocumentUploadRequest
from certportal.modules.documents.service import DocumentService
from certportal.modules.shared import PortalServiceError, to_http_exception
from certportal.modules.users.models import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=DocumentSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document",
)
async def upload_document(
    data: DocumentUploadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DocumentSummary:
    """
    Upload a supporting document.

    The document is verified immediately; the response already carries
    verificationStatus=VERIFIED.
    """
    try:
        document = await DocumentService(db).upload_document(user.id, data)
    except PortalServiceError as e:
        raise to_http_exception(e) from e

    return DocumentSummary.model_validate(document)


@router.get(
    "",
    response_model=list[DocumentSummary],
    summary="List my documents",
)
async def list_documents(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[DocumentSummary]:
    """List the caller's documents without file contents."""
    documents = await DocumentService(db).list_documents(user.id)
    return [DocumentSummary.model_validate(doc) for doc in documents]
