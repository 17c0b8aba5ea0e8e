from fastapi import APIRouter

from certportal.modules.applications.admin_router import router as admin_applications_router
from certportal.modules.applications.router import router as applications_router
from certportal.modules.applications.router import tracking_router
from certportal.modules.auth.router import router as auth_router
from certportal.modules.certificates.router import router as certificates_router
from certportal.modules.certificates.router import verify_router
from certportal.modules.documents.router import router as documents_router

api_router = APIRouter()

api_router.include_router(auth_router, tags=["Authentication"])

api_router.include_router(documents_router, prefix="/documents", tags=["Documents"])

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])

api_router.include_router(tracking_router, prefix="/track-application", tags=["Tracking"])

api_router.include_router(certificates_router, prefix="/certificates", tags=["Certificates"])

api_router.include_router(verify_router, prefix="/verify-certificate", tags=["Verification"])

api_router.include_router(
    admin_applications_router,
    prefix="/admin",
    tags=["Admin - Applications"],
)
