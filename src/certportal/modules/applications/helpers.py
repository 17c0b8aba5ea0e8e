"""
Certificate Application Helpers

Identifier generation and validity arithmetic shared by the workflow
service and its tests.
"""

import secrets
import string
import time
from datetime import datetime

from certportal.modules.applications.models import CertificateType

_ALPHANUMERIC = string.ascii_uppercase + string.digits

# Years a certificate remains valid after issuance
VALIDITY_YEARS: dict[CertificateType, int] = {
    CertificateType.CASTE: 5,
    CertificateType.INCOME: 1,
    CertificateType.RESIDENCE: 3,
}
DEFAULT_VALIDITY_YEARS = 2


def random_code(length: int) -> str:
    """Random uppercase alphanumeric string from a CSPRNG."""
    return "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))


def generate_application_id(now_ms: int | None = None) -> str:
    """
    Generate a human-readable application id.

    Format: ``CERT-{last 6 digits of epoch ms}-{6 random}``, e.g.
    ``CERT-482913-K3Q9ZB``. Uniqueness is enforced by the database; callers
    retry on collision.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"CERT-{str(now_ms)[-6:]}-{random_code(6)}"


def generate_certificate_id(certificate_type: CertificateType | str, year: int) -> str:
    """
    Generate a certificate id.

    Format: ``{TYPE}/{YEAR}/{10 random}``, e.g. ``INCOME/2026/7Q2KX9MZ0A``.
    """
    type_value = getattr(certificate_type, "value", certificate_type)
    return f"{type_value}/{year}/{random_code(10)}"


def add_years(moment: datetime, years: int) -> datetime:
    """Add whole calendar years, clamping Feb 29 to Feb 28 in non-leap years."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def compute_valid_until(certificate_type: CertificateType | str, issued_at: datetime) -> datetime:
    """End of the validity window for a certificate issued at ``issued_at``."""
    try:
        years = VALIDITY_YEARS[CertificateType(certificate_type)]
    except (KeyError, ValueError):
        years = DEFAULT_VALIDITY_YEARS
    return add_years(issued_at, years)
