"""
Shared building blocks: base model and service errors.
"""

from certportal.modules.shared.errors import (
    ForbiddenError,
    PortalServiceError,
    to_http_exception,
)
from certportal.modules.shared.models import BaseModel, utcnow

__all__ = [
    "BaseModel",
    "utcnow",
    "PortalServiceError",
    "ForbiddenError",
    "to_http_exception",
]
