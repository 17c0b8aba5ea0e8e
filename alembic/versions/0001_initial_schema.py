"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration creates:
1. users - citizen and official accounts
2. user_sessions - server-side login sessions
3. documents - uploaded supporting files (base64 text)
4. applications - certificate applications and their workflow status
5. certificates - issued certificates, at most one per application

Enum types are created explicitly with checkfirst so a partially applied
run can be retried.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

user_role = postgresql.ENUM("citizen", "official", name="user_role", create_type=False)
verification_status = postgresql.ENUM(
    "PENDING", "VERIFIED", "FAILED", name="verification_status", create_type=False
)
certificate_type = postgresql.ENUM(
    "CASTE", "INCOME", "RESIDENCE", name="certificate_type", create_type=False
)
application_status = postgresql.ENUM(
    "PENDING",
    "DOCUMENT_VERIFICATION",
    "OFFICIAL_APPROVAL",
    "COMPLETED",
    "REJECTED",
    name="application_status",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    """created_at / updated_at columns (from BaseModel)."""
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create all tables, enum types and indexes."""
    bind = op.get_bind()
    for enum_type in (user_role, verification_status, certificate_type, application_status):
        enum_type.create(bind, checkfirst=True)

    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_timestamps(),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("mobile", sa.String(length=20), nullable=False),
        sa.Column("national_id", sa.String(length=20), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("role", user_role, nullable=False, server_default="citizen"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Sessions
    op.create_table(
        "user_sessions",
        sa.Column("sid", sa.String(length=64), nullable=False),
        sa.Column("sess", sa.JSON(), nullable=False),
        sa.Column("expire", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("sid"),
    )
    op.create_index("ix_user_sessions_expire", "user_sessions", ["expire"], unique=False)

    # Documents
    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_timestamps(),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=100), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_data", sa.Text(), nullable=False),
        sa.Column(
            "uploaded_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "verification_status",
            verification_status,
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("verification_details", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_documents_user_id", ondelete="CASCADE"
        ),
    )
    op.create_index("ix_documents_user_id", "documents", ["user_id"], unique=False)

    # Applications
    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_timestamps(),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("certificate_type", certificate_type, nullable=False),
        sa.Column("application_id", sa.String(length=32), nullable=False),
        sa.Column("status", application_status, nullable=False, server_default="PENDING"),
        sa.Column(
            "applied_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("form_data", sa.JSON(), nullable=False),
        sa.Column("document_ids", sa.JSON(), nullable=False),
        sa.Column("verification_result", sa.JSON(), nullable=True),
        sa.Column("certificate_id", sa.String(length=64), nullable=True),
        sa.Column("decision_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_applications_user_id", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["reviewed_by"],
            ["users.id"],
            name="fk_applications_reviewed_by",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("application_id", name="uq_applications_application_id"),
    )
    op.create_index("ix_applications_user_id", "applications", ["user_id"], unique=False)
    op.create_index(
        "ix_applications_status_applied",
        "applications",
        ["status", "applied_at"],
        unique=False,
    )

    # Certificates
    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        *_timestamps(),
        sa.Column("certificate_id", sa.String(length=64), nullable=False),
        sa.Column("application_pk", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("certificate_type", certificate_type, nullable=False),
        sa.Column(
            "issued_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("certificate_data", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["application_pk"],
            ["applications.id"],
            name="fk_certificates_application_pk",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_certificates_user_id", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("certificate_id", name="uq_certificates_certificate_id"),
        sa.UniqueConstraint("application_pk", name="uq_certificates_application_pk"),
    )
    op.create_index("ix_certificates_user_id", "certificates", ["user_id"], unique=False)


def downgrade() -> None:
    """Drop everything created by upgrade()."""
    op.drop_index("ix_certificates_user_id", table_name="certificates")
    op.drop_table("certificates")

    op.drop_index("ix_applications_status_applied", table_name="applications")
    op.drop_index("ix_applications_user_id", table_name="applications")
    op.drop_table("applications")

    op.drop_index("ix_documents_user_id", table_name="documents")
    op.drop_table("documents")

    op.drop_index("ix_user_sessions_expire", table_name="user_sessions")
    op.drop_table("user_sessions")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (application_status, certificate_type, verification_status, user_role):
        enum_type.drop(bind, checkfirst=True)
