"""
Certificate Applications Repository

Database operations for certificate applications. Methods flush but never
commit; the calling service owns the transaction so multi-step outcomes
(verification, issuance) land atomically.
"""

from datetime import datetime

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.modules.applications.models import (
    Application,
    ApplicationStatus,
    CertificateType,
)

# Valid status transitions. Anything not listed here is refused.
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.PENDING: {
        ApplicationStatus.DOCUMENT_VERIFICATION,  # Verification started
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.DOCUMENT_VERIFICATION: {
        ApplicationStatus.OFFICIAL_APPROVAL,  # All documents verified
        ApplicationStatus.REJECTED,  # Foreign document referenced, or official rejection
    },
    ApplicationStatus.OFFICIAL_APPROVAL: {
        ApplicationStatus.COMPLETED,  # Certificate issued
        ApplicationStatus.REJECTED,
    },
    # Terminal states - no transitions allowed
    ApplicationStatus.COMPLETED: set(),
    ApplicationStatus.REJECTED: set(),
}


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


class ApplicationRepository:
    """Repository for application database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        *,
        user_id: int,
        application_id: str,
        certificate_type: CertificateType,
        form_data: dict,
        document_ids: list[int],
    ) -> Application:
        """Create a new application in PENDING state."""
        application = Application(
            user_id=user_id,
            application_id=application_id,
            certificate_type=certificate_type,
            status=ApplicationStatus.PENDING,
            form_data=form_data,
            document_ids=list(document_ids),
        )
        self.db.add(application)
        await self.db.flush()
        return application

    async def application_id_exists(self, application_id: str) -> bool:
        result = await self.db.execute(
            select(exists().where(Application.application_id == application_id))
        )
        return bool(result.scalar())

    async def get_by_id_for_update(self, id: int) -> Application | None:
        """
        Get application by primary key, locking the row until commit.

        The locked row's state overwrites any copy already in the session.
        """
        result = await self.db.execute(
            select(Application)
            .where(Application.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_application_id(
        self, application_id: str, *, for_update: bool = False
    ) -> Application | None:
        """Get application by its public identifier."""
        stmt = select(Application).where(Application.application_id == application_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> list[Application]:
        """List a user's applications, newest first."""
        result = await self.db.execute(
            select(Application)
            .where(Application.user_id == user_id)
            .order_by(Application.applied_at.desc(), Application.id.desc())
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        application: Application,
        status: ApplicationStatus,
        **kwargs,
    ) -> Application:
        """
        Update application status and optional fields.

        Validates that the status transition is allowed by the state machine,
        which prevents jumps such as PENDING -> COMPLETED.

        Args:
            application: The application to update
            status: New status to set
            **kwargs: Additional fields to update (e.g., decision_reason)

        Raises:
            InvalidStatusTransitionError: If status transition is not allowed
        """
        current_status = application.status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())

        if status != current_status and status not in valid_transitions:
            raise InvalidStatusTransitionError(current_status, status)

        application.status = status

        for key, value in kwargs.items():
            if hasattr(application, key):
                setattr(application, key, value)

        await self.db.flush()
        return application

    async def get_stuck_in_verification(
        self, submitted_before: datetime, limit: int
    ) -> list[int]:
        """
        Get ids of applications whose auto-verification never finished.

        Matches PENDING or DOCUMENT_VERIFICATION applications that reference
        at least one document and were submitted before the given datetime,
        oldest first, at most ``limit`` of them. Idempotent: the same rows
        come back until verification moves them on.
        """
        result = await self.db.execute(
            select(Application.id)
            .where(
                Application.status.in_(
                    [ApplicationStatus.PENDING, ApplicationStatus.DOCUMENT_VERIFICATION]
                ),
                Application.applied_at < submitted_before,
                func.json_array_length(Application.document_ids) > 0,
            )
            .order_by(Application.applied_at, Application.id)
            .limit(limit)
        )
        return list(result.scalars().all())

