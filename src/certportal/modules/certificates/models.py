"""
Certificate Models

The issued artifact for an approved application. Created exactly once per
application and never modified afterwards.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from certportal.modules.applications.models import CertificateType
from certportal.modules.shared import BaseModel, utcnow


class Certificate(BaseModel):
    """An issued certificate with a fixed validity window."""

    __tablename__ = "certificates"

    # Public identifier, format {TYPE}/{YEAR}/{RANDOM}
    certificate_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    # One certificate per application
    application_pk: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("applications.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    certificate_type: Mapped[CertificateType] = mapped_column(
        Enum(CertificateType, name="certificate_type"), nullable=False
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Snapshot of the form data merged with the verification result
    certificate_data: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (Index("ix_certificates_user_id", "user_id"),)
