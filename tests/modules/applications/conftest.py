"""
Fixtures for certificate application tests.

Repositories are the real classes bound to the mock session, with their
query methods replaced by AsyncMocks. Status transitions, document updates
and certificate construction therefore run the production code.
"""

from unittest.mock import AsyncMock

import pytest

from certportal.modules.applications.repository import ApplicationRepository
from certportal.modules.applications.service import ApplicationWorkflow
from certportal.modules.certificates.repository import CertificateRepository
from certportal.modules.documents.repository import DocumentRepository
from certportal.modules.users.models import UserRole
from certportal.modules.users.repository import UserRepository
from factories import make_user


@pytest.fixture
def applications(mock_db):
    repo = ApplicationRepository(mock_db)
    repo.application_id_exists = AsyncMock(return_value=False)
    repo.get_by_id_for_update = AsyncMock(return_value=None)
    repo.get_by_application_id = AsyncMock(return_value=None)
    repo.list_for_user = AsyncMock(return_value=[])
    repo.get_stuck_in_verification = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def documents(mock_db):
    repo = DocumentRepository(mock_db)
    repo.get_many = AsyncMock(return_value={})
    return repo


@pytest.fixture
def users(mock_db):
    repo = UserRepository(mock_db)
    repo.get_by_id = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def certificates(mock_db):
    repo = CertificateRepository(mock_db)
    repo.certificate_id_exists = AsyncMock(return_value=False)
    repo.get_by_application_pk = AsyncMock(return_value=None)
    repo.get_by_certificate_id = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def workflow(mock_db, applications, documents, users, certificates):
    return ApplicationWorkflow(
        mock_db,
        applications=applications,
        documents=documents,
        users=users,
        certificates=certificates,
    )


@pytest.fixture
def citizen():
    return make_user()


@pytest.fixture
def official():
    return make_user(id=99, username="registrar", mobile="9000000000", role=UserRole.OFFICIAL)
