"""Authentication schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from certportal.modules.shared.schemas import CamelModel
from certportal.modules.users.models import UserRole


class RegisterRequest(CamelModel):
    """Registration request schema."""

    username: str = Field(..., min_length=3, max_length=150)
    password: str = Field(..., min_length=6, max_length=128)
    email: EmailStr
    mobile: str = Field(..., min_length=10, max_length=20)
    full_name: str = Field(..., min_length=2, max_length=200)
    national_id: str = Field(..., min_length=1, max_length=20)
    address: str = Field(..., min_length=1, max_length=1000)


class LoginRequest(CamelModel):
    """Login request schema."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """User as returned to the client. The password hash is never included."""

    id: int
    username: str
    full_name: str
    email: str
    mobile: str
    national_id: str
    address: str
    role: UserRole
    created_at: datetime


class LogoutResponse(BaseModel):
    """Logout response schema."""

    message: str = "Logged out"
