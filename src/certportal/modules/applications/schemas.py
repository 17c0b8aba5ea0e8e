"""
Certificate Application Schemas

Pydantic schemas for request validation and response serialization.

Form data is a discriminated union keyed by ``certificateType``: every
variant shares the applicant's personal details and adds the fields its
certificate needs. Malformed submissions are rejected before anything is
written.
"""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import EmailStr, Field, field_validator, model_validator

from certportal.modules.applications.models import ApplicationStatus, CertificateType
from certportal.modules.shared.schemas import CamelModel

# ============================================
# Form data variants
# ============================================


class PersonalInfo(CamelModel):
    """Personal details common to every certificate type."""

    full_name: str = Field(..., min_length=2, max_length=200)
    national_id: str = Field(..., min_length=12, max_length=20)
    dob: str = Field(..., min_length=1, max_length=20)
    gender: str = Field(..., min_length=1, max_length=20)
    mobile: str = Field(..., min_length=10, max_length=20)
    email: EmailStr | None = None
    address: str = Field(..., min_length=10, max_length=1000)

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CasteFormData(PersonalInfo):
    """Caste certificate details."""

    certificate_type: Literal["CASTE"]
    caste_category: str = Field(..., min_length=1, max_length=50)
    sub_caste: str = Field(..., min_length=1, max_length=100)
    father_name: str = Field(..., min_length=2, max_length=200)
    mother_name: str = Field(..., min_length=2, max_length=200)
    birth_place: str = Field(..., min_length=2, max_length=200)
    district: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    purpose: str = Field(..., min_length=2, max_length=500)


class IncomeFormData(PersonalInfo):
    """Income certificate details."""

    certificate_type: Literal["INCOME"]
    annual_income: str = Field(..., min_length=1, max_length=50)
    occupation: str = Field(..., min_length=2, max_length=200)
    employer_name: str | None = Field(None, max_length=200)
    financial_year: str = Field(..., min_length=4, max_length=20)
    family_members: str = Field(..., min_length=1, max_length=10)
    income_sources: str = Field(..., min_length=2, max_length=500)


class ResidenceFormData(PersonalInfo):
    """Residence certificate details."""

    certificate_type: Literal["RESIDENCE"]
    residing_since: str = Field(..., min_length=1, max_length=20)
    property_type: str = Field(..., min_length=1, max_length=50)
    ownership_status: str = Field(..., min_length=1, max_length=50)
    district: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    pincode: str = Field(..., min_length=6, max_length=10)


FormData = Annotated[
    CasteFormData | IncomeFormData | ResidenceFormData,
    Field(discriminator="certificate_type"),
]


# ============================================
# Requests
# ============================================


class ApplicationCreate(CamelModel):
    """Request body for submitting a certificate application."""

    certificate_type: CertificateType
    form_data: FormData
    document_ids: list[int] = Field(default_factory=list, max_length=50)

    @model_validator(mode="before")
    @classmethod
    def propagate_certificate_type(cls, data: Any) -> Any:
        """Let formData omit certificateType; it defaults to the top-level one."""
        if not isinstance(data, dict):
            return data

        top_level = data.get("certificateType", data.get("certificate_type"))
        form = data.get("formData", data.get("form_data"))
        if isinstance(form, dict) and top_level is not None:
            if "certificateType" not in form and "certificate_type" not in form:
                form = {**form, "certificateType": top_level}
                key = "formData" if "formData" in data else "form_data"
                data = {**data, key: form}
        return data

    @model_validator(mode="after")
    def certificate_types_match(self) -> "ApplicationCreate":
        if self.form_data.certificate_type != self.certificate_type:
            raise ValueError("formData.certificateType must match certificateType")
        return self

    @field_validator("document_ids")
    @classmethod
    def unique_document_ids(cls, value: list[int]) -> list[int]:
        """Drop repeated ids while keeping the submitted order."""
        return list(dict.fromkeys(value))

    def form_data_json(self) -> dict[str, Any]:
        """Validated form data as stored: camelCase keys, JSON-safe values."""
        return self.form_data.model_dump(mode="json", by_alias=True)


class TrackApplicationRequest(CamelModel):
    """Public tracking lookup."""

    application_id: str = Field(..., min_length=1, max_length=32)
    mobile_number: str = Field(..., min_length=1, max_length=20)


class ApproveApplicationRequest(CamelModel):
    """Official approval of an application."""

    application_id: str = Field(..., min_length=1, max_length=32)


class RejectApplicationRequest(CamelModel):
    """Official rejection of an application."""

    application_id: str = Field(..., min_length=1, max_length=32)
    reason: str = Field(..., min_length=3, max_length=2000)


# ============================================
# Responses
# ============================================


class ApplicationResponse(CamelModel):
    """Full application as seen by its owner."""

    id: int
    user_id: int
    application_id: str
    certificate_type: CertificateType
    status: ApplicationStatus
    applied_at: datetime
    updated_at: datetime
    form_data: dict[str, Any]
    document_ids: list[int]
    verification_result: dict[str, Any] | None = None
    certificate_id: str | None = None
    decision_reason: str | None = None


class TrackApplicationResponse(CamelModel):
    """Status summary for public tracking. Never includes form data."""

    application_id: str
    status: ApplicationStatus
    certificate_type: CertificateType
    applied_at: datetime
    updated_at: datetime
