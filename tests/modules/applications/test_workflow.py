"""
Unit tests for the certificate application workflow.

These tests cover:
- Application submission and id generation
- Auto-verification (happy path, empty list, missing and foreign documents)
- Idempotent re-runs and the resume sweep
- Official approval (issuance, idempotency, invalid states)
- Official rejection
- Public tracking and owner-scoped reads
- The end-to-end citizen scenario
"""

import re
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from certportal.modules.applications.helpers import add_years
from certportal.modules.applications.models import ApplicationStatus, CertificateType
from certportal.modules.applications.repository import InvalidStatusTransitionError
from certportal.modules.applications.schemas import ApplicationCreate
from certportal.modules.applications.service import (
    AUTO_VERIFICATION_DETAILS,
    NOT_OWNED_REASON,
    ApplicationNotFoundError,
    IdentifierGenerationError,
    InvalidApplicationStateError,
    InvalidMobileNumberError,
)
from certportal.modules.certificates.models import Certificate
from certportal.modules.certificates.repository import CertificateRepository
from certportal.modules.certificates.service import CertificateService
from certportal.modules.documents.models import VerificationStatus
from certportal.modules.documents.service import UPLOAD_VERIFICATION_DETAILS
from certportal.modules.shared import ForbiddenError, utcnow
from factories import ASHA_MOBILE, caste_form_data, make_application, make_document

APPLICATION_ID_PATTERN = re.compile(r"^CERT-\d{6}-[A-Z0-9]{6}$")
CASTE_CERTIFICATE_PATTERN = re.compile(r"^CASTE/\d{4}/[A-Z0-9]{10}$")


def _expire_on_rollback(mock_db, application) -> None:
    """Drop loaded state on rollback, as the session does for expired instances."""

    async def rollback():
        del application.id
        del application.status

    mock_db.rollback.side_effect = rollback


def _caste_request(document_ids: list[int]) -> ApplicationCreate:
    return ApplicationCreate.model_validate(
        {
            "certificateType": "CASTE",
            "formData": caste_form_data(),
            "documentIds": document_ids,
        }
    )


class TestSubmitApplication:
    """Tests for submit_application."""

    @pytest.mark.asyncio
    async def test_submit_creates_pending_application(self, workflow, mock_db):
        """A new application is stored in PENDING with a public id."""
        application = await workflow.submit_application(1, _caste_request([1, 2]))

        assert application.status == ApplicationStatus.PENDING
        assert APPLICATION_ID_PATTERN.match(application.application_id)
        assert application.user_id == 1
        assert application.document_ids == [1, 2]
        assert application.form_data["fullName"] == "Asha Kumari"
        assert application.form_data["certificateType"] == "CASTE"
        mock_db.add.assert_called_once_with(application)
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_submit_regenerates_id_on_collision(self, workflow, applications):
        """A colliding id is replaced by a fresh one."""
        applications.application_id_exists.side_effect = [True, False]

        application = await workflow.submit_application(1, _caste_request([]))

        assert applications.application_id_exists.await_count == 2
        assert APPLICATION_ID_PATTERN.match(application.application_id)

    @pytest.mark.asyncio
    async def test_submit_gives_up_after_repeated_collisions(
        self, workflow, applications, mock_db
    ):
        """Five collisions in a row abort the submission."""
        applications.application_id_exists.return_value = True

        with pytest.raises(IdentifierGenerationError):
            await workflow.submit_application(1, _caste_request([]))

        assert applications.application_id_exists.await_count == 5
        mock_db.commit.assert_not_awaited()


class TestAutoVerification:
    """Tests for run_auto_verification."""

    @pytest.mark.asyncio
    async def test_documents_verified_and_application_awaits_official(
        self, workflow, applications, documents, mock_db
    ):
        """Every referenced document ends VERIFIED; status ends OFFICIAL_APPROVAL."""
        application = make_application(document_ids=[1, 2])
        docs = {
            1: make_document(1, document_type="aadhaar"),
            2: make_document(2, document_type="caste_proof"),
        }
        applications.get_by_id_for_update.return_value = application
        documents.get_many.return_value = docs

        result = await workflow.run_auto_verification(application.id)

        assert result.status == ApplicationStatus.OFFICIAL_APPROVAL
        for doc in docs.values():
            assert doc.verification_status == VerificationStatus.VERIFIED
            assert doc.verification_details == AUTO_VERIFICATION_DETAILS
        assert result.verification_result == {
            "documents": [
                {"documentId": 1, "documentType": "aadhaar", "verified": True},
                {"documentId": 2, "documentType": "caste_proof", "verified": True},
            ]
        }
        # DOCUMENT_VERIFICATION is committed on its own, then the outcome
        assert mock_db.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_document_list_stays_pending(
        self, workflow, applications, documents, mock_db
    ):
        """Without documents nothing happens."""
        application = make_application(document_ids=[])
        applications.get_by_id_for_update.return_value = application

        result = await workflow.run_auto_verification(application.id)

        assert result.status == ApplicationStatus.PENDING
        assert result.verification_result is None
        documents.get_many.assert_not_awaited()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_documents_are_skipped(self, workflow, applications, documents):
        """A dangling document id is left out of the result."""
        application = make_application(document_ids=[1, 404])
        applications.get_by_id_for_update.return_value = application
        documents.get_many.return_value = {1: make_document(1)}

        result = await workflow.run_auto_verification(application.id)

        assert result.status == ApplicationStatus.OFFICIAL_APPROVAL
        assert [entry["documentId"] for entry in result.verification_result["documents"]] == [1]

    @pytest.mark.asyncio
    async def test_foreign_document_rejects_application(
        self, workflow, applications, documents
    ):
        """Referencing another user's document rejects without touching it."""
        application = make_application(user_id=1, document_ids=[1, 7])
        own = make_document(1, user_id=1)
        foreign = make_document(
            7,
            user_id=2,
            status=VerificationStatus.VERIFIED,
            details=UPLOAD_VERIFICATION_DETAILS,
        )
        applications.get_by_id_for_update.return_value = application
        documents.get_many.return_value = {1: own, 7: foreign}

        result = await workflow.run_auto_verification(application.id)

        assert result.status == ApplicationStatus.REJECTED
        assert "7" in result.decision_reason
        assert result.reviewed_at is not None
        assert {
            "documentId": 7,
            "verified": False,
            "reason": NOT_OWNED_REASON,
        } in result.verification_result["documents"]
        assert foreign.verification_details == UPLOAD_VERIFICATION_DETAILS

    @pytest.mark.asyncio
    async def test_rerun_after_completion_is_noop(
        self, workflow, applications, documents, mock_db
    ):
        """Verification of an application already awaiting approval changes nothing."""
        verification_result = {"documents": [{"documentId": 1, "verified": True}]}
        application = make_application(
            status=ApplicationStatus.OFFICIAL_APPROVAL,
            document_ids=[1],
            verification_result=verification_result,
        )
        applications.get_by_id_for_update.return_value = application

        result = await workflow.run_auto_verification(application.id)

        assert result.status == ApplicationStatus.OFFICIAL_APPROVAL
        assert result.verification_result == verification_result
        documents.get_many.assert_not_awaited()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resumes_from_document_verification(
        self, workflow, applications, documents, mock_db
    ):
        """An application left in DOCUMENT_VERIFICATION is finished in one commit."""
        application = make_application(
            status=ApplicationStatus.DOCUMENT_VERIFICATION, document_ids=[1]
        )
        applications.get_by_id_for_update.return_value = application
        documents.get_many.return_value = {1: make_document(1)}

        result = await workflow.run_auto_verification(application.id)

        assert result.status == ApplicationStatus.OFFICIAL_APPROVAL
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_application_returns_none(self, workflow):
        assert await workflow.run_auto_verification(12345) is None

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, workflow, applications, documents, mock_db):
        """A failure while recording the outcome rolls the transaction back."""
        application = make_application(
            status=ApplicationStatus.DOCUMENT_VERIFICATION, document_ids=[1]
        )
        applications.get_by_id_for_update.return_value = application
        documents.get_many.side_effect = RuntimeError("connection lost")

        with pytest.raises(RuntimeError):
            await workflow.run_auto_verification(application.id)

        mock_db.rollback.assert_awaited_once()


class TestResumeStuckVerifications:
    """Tests for the recovery sweep."""

    @pytest.mark.asyncio
    async def test_sweep_continues_after_failure(self, workflow, applications, mock_db):
        applications.get_stuck_in_verification.return_value = [1, 2]

        with patch.object(
            workflow,
            "run_auto_verification",
            AsyncMock(side_effect=[make_application(id=1), RuntimeError("boom")]),
        ) as run:
            stats = await workflow.resume_stuck_verifications(utcnow(), batch_size=25)

        assert stats == {"found": 2, "completed": 1, "failed": 1}
        assert [call.args[0] for call in run.await_args_list] == [1, 2]
        applications.get_stuck_in_verification.assert_awaited_once()
        assert applications.get_stuck_in_verification.await_args.args[1] == 25
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sweep_leaves_application_finished_meanwhile(
        self, workflow, applications, documents, mock_db
    ):
        """An application approved after the sweep's read keeps its terminal state."""
        finished = make_application(status=ApplicationStatus.COMPLETED, document_ids=[1])
        finished.certificate_id = "CASTE/2026/ABCDEFGHJK"
        applications.get_stuck_in_verification.return_value = [finished.id]
        applications.get_by_id_for_update.return_value = finished

        stats = await workflow.resume_stuck_verifications(utcnow())

        assert stats == {"found": 1, "completed": 1, "failed": 0}
        assert finished.status == ApplicationStatus.COMPLETED
        assert finished.certificate_id == "CASTE/2026/ABCDEFGHJK"
        documents.get_many.assert_not_awaited()


class TestApproveApplication:
    """Tests for approve_application."""

    @pytest.mark.asyncio
    async def test_approval_issues_certificate(
        self, workflow, applications, mock_db, official
    ):
        """Approval completes the application and issues one certificate."""
        verification_result = {
            "documents": [{"documentId": 1, "documentType": "aadhaar", "verified": True}]
        }
        application = make_application(
            status=ApplicationStatus.OFFICIAL_APPROVAL,
            document_ids=[1],
            verification_result=verification_result,
        )
        applications.get_by_application_id.return_value = application

        certificate, created = await workflow.approve_application(
            application.application_id, official
        )

        assert created is True
        assert CASTE_CERTIFICATE_PATTERN.match(certificate.certificate_id)
        assert certificate.certificate_id.split("/")[1] == str(certificate.issued_at.year)
        assert certificate.valid_until == add_years(certificate.issued_at, 5)
        assert certificate.application_pk == application.id
        assert certificate.user_id == application.user_id
        assert certificate.certificate_data["fullName"] == "Asha Kumari"
        assert certificate.certificate_data["verificationResult"] == verification_result

        assert application.status == ApplicationStatus.COMPLETED
        assert application.certificate_id == certificate.certificate_id
        assert application.verification_result["certificateId"] == certificate.certificate_id
        assert application.verification_result["documents"] == verification_result["documents"]
        assert application.reviewed_by == official.id
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_approving_completed_application_returns_existing_certificate(
        self, workflow, applications, certificates, mock_db, official
    ):
        """A second approval does not issue another certificate."""
        application = make_application(status=ApplicationStatus.COMPLETED)
        existing = Certificate(
            id=5,
            certificate_id="CASTE/2026/ABCDEFGHIJ",
            application_pk=application.id,
            user_id=application.user_id,
            certificate_type=CertificateType.CASTE,
            issued_at=utcnow(),
            valid_until=add_years(utcnow(), 5),
            certificate_data={},
        )
        applications.get_by_application_id.return_value = application
        certificates.get_by_application_pk.return_value = existing

        certificate, created = await workflow.approve_application(
            application.application_id, official
        )

        assert certificate is existing
        assert created is False
        mock_db.add.assert_not_called()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.parametrize(
        "status",
        [
            ApplicationStatus.PENDING,
            ApplicationStatus.DOCUMENT_VERIFICATION,
            ApplicationStatus.REJECTED,
        ],
    )
    @pytest.mark.asyncio
    async def test_approval_requires_official_approval_status(
        self, workflow, applications, mock_db, official, status
    ):
        applications.get_by_application_id.return_value = make_application(status=status)

        with pytest.raises(InvalidApplicationStateError) as exc_info:
            await workflow.approve_application("CERT-482913-K3Q9ZB", official)

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_code == "INVALID_APPLICATION_STATE"
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_approval_returns_winning_certificate(
        self, workflow, applications, certificates, mock_db, official
    ):
        """A unique violation on the certificate row hands back the one already issued."""
        application = make_application(status=ApplicationStatus.OFFICIAL_APPROVAL, document_ids=[1])
        winner = Certificate(
            id=7,
            certificate_id="CASTE/2026/WINNER0001",
            application_pk=application.id,
            user_id=application.user_id,
            certificate_type=CertificateType.CASTE,
            issued_at=utcnow(),
            valid_until=add_years(utcnow(), 5),
            certificate_data={},
        )
        applications.get_by_application_id.return_value = application
        certificates.get_by_application_pk.return_value = winner
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        _expire_on_rollback(mock_db, application)

        certificate, created = await workflow.approve_application(
            application.application_id, official
        )

        assert certificate is winner
        assert created is False
        certificates.get_by_application_pk.assert_awaited_once_with(10)

    @pytest.mark.asyncio
    async def test_integrity_error_without_certificate_propagates(
        self, workflow, applications, mock_db, official
    ):
        application = make_application(status=ApplicationStatus.OFFICIAL_APPROVAL, document_ids=[1])
        applications.get_by_application_id.return_value = application
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
        _expire_on_rollback(mock_db, application)

        with pytest.raises(IntegrityError):
            await workflow.approve_application(application.application_id, official)

        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refused_transition_reports_status_seen_before_rollback(
        self, workflow, applications, mock_db, official
    ):
        application = make_application(status=ApplicationStatus.OFFICIAL_APPROVAL, document_ids=[1])
        applications.get_by_application_id.return_value = application
        applications.update_status = AsyncMock(
            side_effect=InvalidStatusTransitionError(
                ApplicationStatus.REJECTED, ApplicationStatus.COMPLETED
            )
        )
        _expire_on_rollback(mock_db, application)

        with pytest.raises(InvalidApplicationStateError) as exc_info:
            await workflow.approve_application(application.application_id, official)

        assert exc_info.value.current_status == ApplicationStatus.OFFICIAL_APPROVAL

    @pytest.mark.asyncio
    async def test_approving_unknown_application(self, workflow, official):
        with pytest.raises(ApplicationNotFoundError) as exc_info:
            await workflow.approve_application("CERT-000000-NOPE00", official)

        assert exc_info.value.status_code == 404


class TestRejectApplication:
    """Tests for reject_application."""

    @pytest.mark.asyncio
    async def test_rejection_records_reason(self, workflow, applications, mock_db, official):
        application = make_application(status=ApplicationStatus.OFFICIAL_APPROVAL)
        applications.get_by_application_id.return_value = application

        result = await workflow.reject_application(
            application.application_id, official, "Caste proof is illegible"
        )

        assert result.status == ApplicationStatus.REJECTED
        assert result.decision_reason == "Caste proof is illegible"
        assert result.reviewed_by == official.id
        mock_db.commit.assert_awaited_once()

    @pytest.mark.parametrize("status", [ApplicationStatus.COMPLETED, ApplicationStatus.REJECTED])
    @pytest.mark.asyncio
    async def test_terminal_applications_cannot_be_rejected(
        self, workflow, applications, official, status
    ):
        applications.get_by_application_id.return_value = make_application(status=status)

        with pytest.raises(InvalidApplicationStateError):
            await workflow.reject_application("CERT-482913-K3Q9ZB", official, "Too late")


class TestTrackApplication:
    """Tests for public tracking."""

    @pytest.mark.asyncio
    async def test_tracking_with_matching_mobile(self, workflow, applications, users, citizen):
        application = make_application()
        applications.get_by_application_id.return_value = application
        users.get_by_id.return_value = citizen

        result = await workflow.track_application(application.application_id, ASHA_MOBILE)

        assert result is application

    @pytest.mark.asyncio
    async def test_tracking_with_wrong_mobile_is_forbidden(
        self, workflow, applications, users, citizen
    ):
        applications.get_by_application_id.return_value = make_application()
        users.get_by_id.return_value = citizen

        with pytest.raises(InvalidMobileNumberError) as exc_info:
            await workflow.track_application("CERT-482913-K3Q9ZB", "9999999999")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_tracking_requires_exact_mobile(self, workflow, applications, users, citizen):
        applications.get_by_application_id.return_value = make_application()
        users.get_by_id.return_value = citizen

        with pytest.raises(InvalidMobileNumberError):
            await workflow.track_application("CERT-482913-K3Q9ZB", f" {ASHA_MOBILE} ")

    @pytest.mark.asyncio
    async def test_tracking_unknown_application(self, workflow):
        with pytest.raises(ApplicationNotFoundError) as exc_info:
            await workflow.track_application("CERT-000000-NOPE00", ASHA_MOBILE)

        assert exc_info.value.status_code == 404


class TestOwnerReads:
    """Tests for owner-scoped application reads."""

    @pytest.mark.asyncio
    async def test_owner_can_read_application(self, workflow, applications):
        application = make_application(user_id=1)
        applications.get_by_application_id.return_value = application

        assert await workflow.get_application(1, application.application_id) is application

    @pytest.mark.asyncio
    async def test_other_user_is_forbidden(self, workflow, applications):
        applications.get_by_application_id.return_value = make_application(user_id=1)

        with pytest.raises(ForbiddenError) as exc_info:
            await workflow.get_application(2, "CERT-482913-K3Q9ZB")

        assert exc_info.value.status_code == 403


class TestEndToEnd:
    """Submit, verify, track, approve and publicly verify one application."""

    @pytest.mark.asyncio
    async def test_citizen_obtains_caste_certificate(
        self, workflow, applications, documents, users, mock_db, citizen, official
    ):
        create_application = applications.create

        async def create_with_pk(**kwargs):
            application = await create_application(**kwargs)
            application.id = 10
            return application

        applications.create = AsyncMock(side_effect=create_with_pk)

        # Submit with one uploaded aadhaar document
        aadhaar = make_document(1, user_id=citizen.id, document_type="aadhaar")
        application = await workflow.submit_application(citizen.id, _caste_request([1]))
        assert application.status == ApplicationStatus.PENDING

        # Background verification
        applications.get_by_id_for_update.return_value = application
        documents.get_many.return_value = {1: aadhaar}
        await workflow.run_auto_verification(application.id)
        assert application.status == ApplicationStatus.OFFICIAL_APPROVAL
        assert aadhaar.verification_status == VerificationStatus.VERIFIED

        # Public tracking
        applications.get_by_application_id.return_value = application
        users.get_by_id.return_value = citizen
        tracked = await workflow.track_application(application.application_id, ASHA_MOBILE)
        assert tracked.status == ApplicationStatus.OFFICIAL_APPROVAL

        # Official approval
        certificate, created = await workflow.approve_application(
            application.application_id, official
        )
        assert created is True
        assert CASTE_CERTIFICATE_PATTERN.match(certificate.certificate_id)
        assert certificate.valid_until == add_years(certificate.issued_at, 5)
        assert application.status == ApplicationStatus.COMPLETED

        # Public verification
        certificate_repo = CertificateRepository(mock_db)
        certificate_repo.get_by_certificate_id = AsyncMock(return_value=certificate)
        verification = await CertificateService(
            mock_db, certificates=certificate_repo
        ).verify_certificate(certificate.certificate_id)
        assert verification.is_valid is True
        assert verification.is_expired is False
        assert verification.certificate_type == CertificateType.CASTE
