"""
Admissions Schemas

Pydantic schemas for request validation and response serialization.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.modules.admissions.helpers import MAX_DELAY_MINUTES

# Re-use enums from models (they work with Pydantic too!)
from app.modules.admissions.models import (
    ApplicantSource,
    ApplicantStatus,
    ApprovalMode,
    NotificationKind,
)


class ApplicantCreate(BaseModel):
    """Request body for creating an applicant (self-service or manual entry)."""

    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str = Field(..., min_length=1, max_length=20)
    course: str = Field(..., min_length=1, max_length=200)
    kcse_grade: str | None = Field(None, max_length=5)
    county: str | None = Field(None, max_length=100)


class ApplicantResponse(BaseModel):
    """Applicant as returned to admin clients."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: str
    email: str | None
    phone: str
    course: str
    kcse_grade: str | None
    county: str | None
    admission_number: str
    status: ApplicantStatus
    source: ApplicantSource
    submitted_at: datetime


class ApplicationSubmittedResponse(BaseModel):
    """Response for POST /applications."""

    id: UUID
    admission_number: str
    status: ApplicantStatus
    auto_decision_scheduled: bool
    message: str


class DecisionRequest(BaseModel):
    """Request body for a manual decision. `Pending` resets the applicant."""

    decision: ApplicantStatus


class DecisionResponse(BaseModel):
    """Result of a manual decision."""

    applicant: ApplicantResponse
    previous_status: ApplicantStatus
    changed: bool
    notification_sent: bool | None = None
    notification_warning: str | None = None


class DecisionSettings(BaseModel):
    """Admin-configurable decision settings."""

    approval_mode: ApprovalMode
    auto_approval_delay_minutes: float = Field(
        ..., gt=0, le=MAX_DELAY_MINUTES, allow_inf_nan=False
    )
    reporting_date: date | None = None


class CourseCreate(BaseModel):
    """Request body for adding a course."""

    name: str = Field(..., min_length=1, max_length=200)
    fee_balance: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    fee_per_year: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    duration: str | None = Field(None, max_length=50)
    description: str | None = None


class CourseUpdate(BaseModel):
    """Partial update of a course. Only fields that are sent are changed."""

    name: str | None = Field(None, min_length=1, max_length=200)
    fee_balance: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    fee_per_year: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    duration: str | None = Field(None, max_length=50)
    description: str | None = None


class CourseResponse(BaseModel):
    """Course with the fee facts printed on admission letters."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    fee_balance: Decimal | None
    fee_per_year: Decimal | None
    duration: str | None
    description: str | None


class NotificationLogResponse(BaseModel):
    """Notification log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: NotificationKind
    recipient: str
    subject: str
    applicant_id: UUID | None
    applicant_name: str
    message_id: str | None
    status: str
    sent_at: datetime


class ResendAdmissionResponse(BaseModel):
    """Result of an explicit admission letter re-send."""

    applicant_id: UUID
    recipient: str
    message_id: str
    logged: bool


class PendingDecisionResponse(BaseModel):
    """An armed auto-approval timer."""

    applicant_id: UUID
    run_at: datetime
