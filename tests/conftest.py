"""
Shared fixtures.

The database session is an AsyncMock, so no database is needed.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from certportal.core.config import settings
from certportal.core.rate_limit import reset_memory_store


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Keep password hashing cheap in tests."""
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)


@pytest.fixture(autouse=True)
def clean_rate_limits():
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db
