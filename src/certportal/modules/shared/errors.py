"""
Service Errors

Base exception for business-rule failures raised by the service layer.
Routers convert these into HTTP responses with a structured body:

    {"detail": {"error": "<ERROR_CODE>", "message": "<human readable>"}}
"""

from fastapi import HTTPException, status


class PortalServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ForbiddenError(PortalServiceError):
    """Raised when the caller does not own the requested resource."""

    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=status.HTTP_403_FORBIDDEN,
        )


def to_http_exception(e: PortalServiceError) -> HTTPException:
    """Convert a service error to an HTTPException."""
    return HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )
