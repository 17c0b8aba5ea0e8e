"""
Certificate Application Workflow

Business logic for certificate applications, from submission to issuance.

This module implements:
1. Submission:
   - Form data arrives already validated against its certificate type
   - The application is stored in PENDING with a fresh public id
   - Auto-verification is scheduled after the response (see router)

2. Auto-verification:
   - PENDING -> DOCUMENT_VERIFICATION is committed on its own
   - The outcome (documents marked VERIFIED, verification_result, and
     OFFICIAL_APPROVAL) is committed in a single transaction
   - Documents owned by another user reject the application
   - Idempotent: a run on an application past DOCUMENT_VERIFICATION is a
     no-op, so the resume job can safely re-run it

3. Official decisions:
   - Approval issues exactly one certificate per application; approving a
     COMPLETED application returns the existing certificate
   - Rejection is allowed from any non-terminal state

4. Tracking:
   - Public lookup by application id, guarded by the applicant's mobile
"""

import logging
from datetime import datetime

from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from certportal.modules.applications.helpers import (
    compute_valid_until,
    generate_application_id,
    generate_certificate_id,
)
from certportal.modules.applications.models import Application, ApplicationStatus
from certportal.modules.applications.repository import (
    ApplicationRepository,
    InvalidStatusTransitionError,
)
from certportal.modules.applications.schemas import ApplicationCreate
from certportal.modules.certificates.models import Certificate
from certportal.modules.certificates.repository import CertificateRepository
from certportal.modules.documents.models import VerificationStatus
from certportal.modules.documents.repository import DocumentRepository
from certportal.modules.shared import ForbiddenError, PortalServiceError, utcnow
from certportal.modules.users.models import User
from certportal.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Constants
MAX_ID_ATTEMPTS = 5
AUTO_VERIFICATION_DETAILS = {"message": "Auto-verified successfully"}
NOT_OWNED_REASON = "not_owned_by_applicant"

TERMINAL_STATUSES = frozenset({ApplicationStatus.COMPLETED, ApplicationStatus.REJECTED})
VERIFIABLE_STATUSES = frozenset(
    {ApplicationStatus.PENDING, ApplicationStatus.DOCUMENT_VERIFICATION}
)


# ============================================
# Exceptions
# ============================================


class ApplicationNotFoundError(PortalServiceError):
    """Raised when an application doesn't exist."""

    def __init__(self, application_id: str):
        super().__init__(
            message="Application not found",
            error_code="APPLICATION_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.application_id = application_id


class InvalidMobileNumberError(PortalServiceError):
    """Raised when a tracking lookup gives the wrong mobile number."""

    def __init__(self):
        super().__init__(
            message="Invalid mobile number",
            error_code="INVALID_MOBILE_NUMBER",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class InvalidApplicationStateError(PortalServiceError):
    """Raised when an operation is not allowed in the application's current status."""

    def __init__(self, current_status: ApplicationStatus, action: str):
        super().__init__(
            message=f"Cannot {action} an application in status {current_status.value}",
            error_code="INVALID_APPLICATION_STATE",
            status_code=status.HTTP_409_CONFLICT,
        )
        self.current_status = current_status


class IdentifierGenerationError(PortalServiceError):
    """Raised when no unused identifier could be generated."""

    def __init__(self, kind: str):
        super().__init__(
            message=f"Could not allocate a unique {kind} id. Please try again.",
            error_code="IDENTIFIER_COLLISION",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


# ============================================
# Workflow
# ============================================


class ApplicationWorkflow:
    """
    Application workflow bound to one database session.

    Repositories default to SQLAlchemy ones built from ``db``; tests pass
    doubles instead.
    """

    def __init__(
        self,
        db: AsyncSession,
        applications: ApplicationRepository | None = None,
        documents: DocumentRepository | None = None,
        users: UserRepository | None = None,
        certificates: CertificateRepository | None = None,
    ):
        self.db = db
        self.applications = applications or ApplicationRepository(db)
        self.documents = documents or DocumentRepository(db)
        self.users = users or UserRepository(db)
        self.certificates = certificates or CertificateRepository(db)

    # ----------------------------------------
    # Submission
    # ----------------------------------------

    async def submit_application(self, user_id: int, data: ApplicationCreate) -> Application:
        """
        Store a new application in PENDING.

        Verification is not run here; the caller schedules
        ``run_auto_verification`` once the response has been sent.
        """
        application_id = await self._new_application_id()

        application = await self.applications.create(
            user_id=user_id,
            application_id=application_id,
            certificate_type=data.certificate_type,
            form_data=data.form_data_json(),
            document_ids=data.document_ids,
        )
        await self.db.commit()

        logger.info(
            f"Application {application_id} ({data.certificate_type.value}) submitted "
            f"by user {user_id} with {len(data.document_ids)} document(s)"
        )
        return application

    async def _new_application_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = generate_application_id()
            if not await self.applications.application_id_exists(candidate):
                return candidate
            logger.warning(f"Application id collision on {candidate}, regenerating")
        raise IdentifierGenerationError("application")

    async def _new_certificate_id(self, application: Application, year: int) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = generate_certificate_id(application.certificate_type, year)
            if not await self.certificates.certificate_id_exists(candidate):
                return candidate
            logger.warning(f"Certificate id collision on {candidate}, regenerating")
        raise IdentifierGenerationError("certificate")

    # ----------------------------------------
    # Auto-verification
    # ----------------------------------------

    async def run_auto_verification(self, application_pk: int) -> Application | None:
        """
        Auto-verify the documents referenced by an application.

        Applications with no documents stay PENDING. Missing documents are
        skipped. A document belonging to someone else rejects the
        application and is left untouched.

        Returns:
            The application after verification, or None if it no longer exists
        """
        application = await self.applications.get_by_id_for_update(application_pk)
        if application is None:
            logger.warning(f"Auto-verification skipped, application {application_pk} not found")
            return None

        if application.status not in VERIFIABLE_STATUSES:
            logger.debug(
                f"Auto-verification skipped for {application.application_id}: "
                f"status={application.status.value}"
            )
            return application

        if not application.document_ids:
            logger.info(f"Application {application.application_id} has no documents, stays PENDING")
            return application

        if application.status == ApplicationStatus.PENDING:
            await self.applications.update_status(
                application, ApplicationStatus.DOCUMENT_VERIFICATION
            )
            await self.db.commit()
            logger.info(f"Application {application.application_id} -> DOCUMENT_VERIFICATION")

            # Re-acquire the row; another run may have finished in between
            application = await self.applications.get_by_id_for_update(application_pk)
            if application is None or application.status != ApplicationStatus.DOCUMENT_VERIFICATION:
                return application

        try:
            return await self._verify_documents(application)
        except Exception:
            await self.db.rollback()
            raise

    async def _verify_documents(self, application: Application) -> Application:
        documents = await self.documents.get_many(application.document_ids)

        results: list[dict] = []
        foreign_ids: list[int] = []

        for document_id in application.document_ids:
            document = documents.get(document_id)
            if document is None:
                logger.warning(
                    f"Application {application.application_id} references missing "
                    f"document {document_id}, skipping"
                )
                continue

            if document.user_id != application.user_id:
                logger.warning(
                    f"Application {application.application_id} references document "
                    f"{document_id} owned by another user"
                )
                foreign_ids.append(document_id)
                results.append(
                    {"documentId": document_id, "verified": False, "reason": NOT_OWNED_REASON}
                )
                continue

            await self.documents.update_verification(
                document, VerificationStatus.VERIFIED, AUTO_VERIFICATION_DETAILS
            )
            results.append(
                {
                    "documentId": document_id,
                    "documentType": document.document_type,
                    "verified": True,
                }
            )

        verification_result = {"documents": results}

        if foreign_ids:
            await self.applications.update_status(
                application,
                ApplicationStatus.REJECTED,
                verification_result=verification_result,
                decision_reason=(
                    "Documents not owned by the applicant: "
                    + ", ".join(str(doc_id) for doc_id in foreign_ids)
                ),
                reviewed_at=utcnow(),
            )
        else:
            await self.applications.update_status(
                application,
                ApplicationStatus.OFFICIAL_APPROVAL,
                verification_result=verification_result,
            )
        await self.db.commit()

        logger.info(
            f"Application {application.application_id} -> {application.status.value} "
            f"({len(results)} document(s) checked)"
        )
        return application

    # ----------------------------------------
    # Official decisions
    # ----------------------------------------

    async def approve_application(
        self, application_id: str, official: User
    ) -> tuple[Certificate, bool]:
        """
        Approve an application and issue its certificate.

        Status change, certificate row and the application back-fill are
        committed together.

        Returns:
            (certificate, created). ``created`` is False when the
            application was already COMPLETED and its certificate is returned.

        Raises:
            ApplicationNotFoundError: Unknown application id
            InvalidApplicationStateError: Application is not awaiting approval
        """
        logger.info(f"Official {official.id} approving application {application_id}")

        application = await self.applications.get_by_application_id(
            application_id, for_update=True
        )
        if application is None:
            logger.warning(f"Application not found: {application_id}")
            raise ApplicationNotFoundError(application_id)

        if application.status == ApplicationStatus.COMPLETED:
            existing = await self.certificates.get_by_application_pk(application.id)
            if existing is not None:
                logger.info(
                    f"Application {application_id} already approved, "
                    f"returning certificate {existing.certificate_id}"
                )
                return existing, False

        if application.status != ApplicationStatus.OFFICIAL_APPROVAL:
            logger.warning(
                f"Cannot approve application {application_id}: status={application.status.value}"
            )
            raise InvalidApplicationStateError(application.status, "approve")

        # Rollback expires the instance; read nothing from it afterwards
        application_pk = application.id
        current_status = application.status

        issued_at = utcnow()
        certificate_id = await self._new_certificate_id(application, issued_at.year)
        verification_result = dict(application.verification_result or {})

        try:
            certificate = await self.certificates.create(
                certificate_id=certificate_id,
                application_pk=application_pk,
                user_id=application.user_id,
                certificate_type=application.certificate_type,
                issued_at=issued_at,
                valid_until=compute_valid_until(application.certificate_type, issued_at),
                certificate_data={
                    **(application.form_data or {}),
                    "verificationResult": verification_result,
                },
            )
            await self.applications.update_status(
                application,
                ApplicationStatus.COMPLETED,
                certificate_id=certificate_id,
                verification_result={**verification_result, "certificateId": certificate_id},
                reviewed_by=official.id,
                reviewed_at=issued_at,
            )
            await self.db.commit()
        except InvalidStatusTransitionError as e:
            await self.db.rollback()
            logger.error(f"Status transition error during approval: {e}")
            raise InvalidApplicationStateError(current_status, "approve") from e
        except IntegrityError:
            # A concurrent approval issued the certificate first
            await self.db.rollback()
            existing = await self.certificates.get_by_application_pk(application_pk)
            if existing is None:
                raise
            logger.info(f"Application {application_id} approved concurrently, reusing certificate")
            return existing, False

        logger.info(
            f"Application {application_id} approved, certificate {certificate_id} "
            f"valid until {certificate.valid_until.isoformat()}"
        )
        return certificate, True

    async def reject_application(
        self, application_id: str, official: User, reason: str
    ) -> Application:
        """
        Reject an application from any non-terminal state.

        Raises:
            ApplicationNotFoundError: Unknown application id
            InvalidApplicationStateError: Application is already COMPLETED or REJECTED
        """
        logger.info(f"Official {official.id} rejecting application {application_id}")

        application = await self.applications.get_by_application_id(
            application_id, for_update=True
        )
        if application is None:
            logger.warning(f"Application not found: {application_id}")
            raise ApplicationNotFoundError(application_id)

        if application.status in TERMINAL_STATUSES:
            logger.warning(
                f"Cannot reject application {application_id}: status={application.status.value}"
            )
            raise InvalidApplicationStateError(application.status, "reject")

        current_status = application.status
        try:
            await self.applications.update_status(
                application,
                ApplicationStatus.REJECTED,
                decision_reason=reason,
                reviewed_by=official.id,
                reviewed_at=utcnow(),
            )
        except InvalidStatusTransitionError as e:
            await self.db.rollback()
            raise InvalidApplicationStateError(current_status, "reject") from e
        await self.db.commit()

        logger.info(f"Application {application_id} rejected")
        return application

    # ----------------------------------------
    # Reads
    # ----------------------------------------

    async def track_application(self, application_id: str, mobile_number: str) -> Application:
        """
        Public status lookup.

        Raises:
            ApplicationNotFoundError: Unknown application id
            InvalidMobileNumberError: Mobile does not match the applicant's
        """
        application = await self.applications.get_by_application_id(application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        applicant = await self.users.get_by_id(application.user_id)
        if applicant is None or applicant.mobile != mobile_number:
            logger.warning(f"Tracking denied for {application_id}: mobile mismatch")
            raise InvalidMobileNumberError()

        return application

    async def list_applications(self, user_id: int) -> list[Application]:
        return await self.applications.list_for_user(user_id)

    async def get_application(self, user_id: int, application_id: str) -> Application:
        """
        Get one of the caller's applications.

        Raises:
            ApplicationNotFoundError: Unknown application id
            ForbiddenError: Application belongs to someone else
        """
        application = await self.applications.get_by_application_id(application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)
        if application.user_id != user_id:
            logger.warning(f"User {user_id} denied access to application {application_id}")
            raise ForbiddenError()
        return application

    # ----------------------------------------
    # Recovery
    # ----------------------------------------

    async def resume_stuck_verifications(
        self, submitted_before: datetime, batch_size: int = 100
    ) -> dict:
        """
        Re-run auto-verification for applications left mid-way.

        At most ``batch_size`` applications are handled per call; the rest
        are picked up by the next sweep. Each application is processed
        independently; one failure does not stop the sweep.

        Returns:
            Dict with counts: {"found": N, "completed": N, "failed": N}
        """
        pks = await self.applications.get_stuck_in_verification(submitted_before, batch_size)
        # Release the read before taking row locks one by one
        await self.db.commit()

        stats = {"found": len(pks), "completed": 0, "failed": 0}

        for pk in pks:
            try:
                await self.run_auto_verification(pk)
                stats["completed"] += 1
            except Exception as e:
                stats["failed"] += 1
                await self.db.rollback()
                logger.error(f"Resuming verification for application {pk} failed: {e}", exc_info=True)

        return stats
