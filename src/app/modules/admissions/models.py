"""
Admissions Models

Database models for student applicants, courses, admin settings and the
notification log.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class ApplicantStatus(str, enum.Enum):
    """Admission decision status of an applicant."""

    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class ApplicantSource(str, enum.Enum):
    """Where an application came from. Informational only."""

    MANUAL = "manual"
    SELF_SERVICE = "self_service"


class ApprovalMode(str, enum.Enum):
    """Whether pending applicants are accepted automatically after a delay."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class NotificationKind(str, enum.Enum):
    """Kinds of emails recorded in the notification log."""

    ADMISSION_PDF = "admission_pdf"
    APPLICATION_CONFIRMATION = "application_confirmation"


class SettingKey(str, enum.Enum):
    """Keys of the persisted admin settings."""

    APPROVAL_MODE = "approval_mode"
    AUTO_APPROVAL_DELAY = "auto_approval_delay"
    REPORTING_DATE = "reporting_date"
    ADMISSION_COUNTER = "admission_counter"


class Applicant(Base):
    """
    Student admission application.

    `status` is only ever changed through the decision state machine.
    `submitted_at` is set once at creation and anchors the auto-approval delay.
    """

    __tablename__ = "applicants"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Profile
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    course: Mapped[str] = mapped_column(String(200), nullable=False)
    kcse_grade: Mapped[str | None] = mapped_column(String(5), nullable=True)
    county: Mapped[str | None] = mapped_column(String(100), nullable=True)

    admission_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    # Decision
    status: Mapped[ApplicantStatus] = mapped_column(
        Enum(ApplicantStatus, name="applicant_status"),
        nullable=False,
        default=ApplicantStatus.PENDING,
    )
    source: Mapped[ApplicantSource] = mapped_column(
        Enum(ApplicantSource, name="applicant_source"),
        nullable=False,
        default=ApplicantSource.MANUAL,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_applicants_status_submitted_at", "status", "submitted_at"),
        Index("ix_applicants_email", "email"),
    )


class Course(Base):
    """Course offered by the institute, with its fee facts."""

    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    fee_balance: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    fee_per_year: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    duration: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class AdminSetting(Base):
    """Key/value setting managed from the admin dashboard."""

    __tablename__ = "admin_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class NotificationLog(Base):
    """
    Append-only record of an email that was actually delivered.

    No row for an applicant and kind means "not attempted yet", never "failed".
    """

    __tablename__ = "email_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    kind: Mapped[NotificationKind] = mapped_column(
        Enum(NotificationKind, name="notification_kind"), nullable=False
    )
    recipient: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    applicant_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    applicant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="sent")
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_email_logs_applicant_kind", "applicant_id", "kind"),
        Index("ix_email_logs_sent_at", "sent_at"),
    )
