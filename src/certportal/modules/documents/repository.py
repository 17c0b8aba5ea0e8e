"""
Document Repository

Database operations for uploaded documents. Methods flush but never commit;
the calling service owns the transaction.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import defer

from certportal.modules.documents.models import Document, VerificationStatus

class DocumentRepository:
    """Repository for document database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        user_id: int,
        document_type: str,
        file_name: str,
        file_data: str,
    ) -> Document:
        """Store a newly uploaded document in PENDING state."""
        document = Document(
            user_id=user_id,
            document_type=document_type,
            file_name=file_name,
            file_data=file_data,
            verification_status=VerificationStatus.PENDING,
        )
        self.db.add(document)
        await self.db.flush()
        return document

    async def list_for_user(self, user_id: int) -> list[Document]:
        """
        List a user's documents, oldest first.

        The file body is deferred so listing never loads the payloads.
        """
        result = await self.db.execute(
            select(Document)
            .options(defer(Document.file_data, raiseload=True))
            .where(Document.user_id == user_id)
            .order_by(Document.uploaded_at, Document.id)
        )
        return list(result.scalars().all())

    async def get_many(self, document_ids: list[int]) -> dict[int, Document]:
        """Load documents by id without file bodies. Unknown ids are absent."""
        if not document_ids:
            return {}
        result = await self.db.execute(
            select(Document)
            .options(defer(Document.file_data, raiseload=True))
            .where(Document.id.in_(document_ids))
        )
        return {doc.id: doc for doc in result.scalars().all()}

    async def update_verification(
        self,
        document: Document,
        status: VerificationStatus,
        details: dict | None = None,
    ) -> Document:
        """Set the verification status and detail payload of a document."""
        document.verification_status = status
        document.verification_details = details
        await self.db.flush()
        return document
