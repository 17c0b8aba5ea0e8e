"""
Document Models

Supporting files uploaded by citizens (identity proofs, income proofs, ...).
The file body is kept as base64 text in the row.
"""

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certportal.modules.shared import BaseModel, utcnow


class VerificationStatus(str, enum.Enum):
    """Verification state of an uploaded document."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"


class Document(BaseModel):
    """An uploaded supporting document. Owned by exactly one user, never deleted."""

    __tablename__ = "documents"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Free-form tag chosen by the client, e.g. "aadhaar", "income_proof"
    document_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_data: Mapped[str] = mapped_column(Text, nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    verification_status: Mapped[VerificationStatus] = mapped_column(
        Enum(VerificationStatus, name="verification_status"),
        nullable=False,
        default=VerificationStatus.PENDING,
    )
    verification_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("ix_documents_user_id", "user_id"),)
