"""
Certificate Application Models

A citizen's request for a certificate, tracked through a linear workflow:

    PENDING -> DOCUMENT_VERIFICATION -> OFFICIAL_APPROVAL -> COMPLETED

with REJECTED reachable from any non-terminal state.
"""

import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certportal.modules.shared import BaseModel, utcnow


class CertificateType(str, enum.Enum):
    """Kinds of certificate that can be applied for."""

    CASTE = "CASTE"
    INCOME = "INCOME"
    RESIDENCE = "RESIDENCE"


class ApplicationStatus(str, enum.Enum):
    """Status of a certificate application."""

    PENDING = "PENDING"
    DOCUMENT_VERIFICATION = "DOCUMENT_VERIFICATION"
    OFFICIAL_APPROVAL = "OFFICIAL_APPROVAL"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class Application(BaseModel):
    """
    Certificate application.

    ``application_id`` is the human-readable, externally shareable identifier;
    ``id`` is the internal key. ``document_ids`` references documents by id
    with no foreign key, so entries may dangle.
    """

    __tablename__ = "applications"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    certificate_type: Mapped[CertificateType] = mapped_column(
        Enum(CertificateType, name="certificate_type"), nullable=False
    )
    application_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)

    # Status tracking
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.PENDING,
    )
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Submitted data
    form_data: Mapped[dict] = mapped_column(JSON, nullable=False)
    document_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Outcome of auto-verification, later back-filled with the certificate id
    verification_result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    certificate_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Official decision
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_applications_user_id", "user_id"),
        Index("ix_applications_status_applied", "status", "applied_at"),
    )
