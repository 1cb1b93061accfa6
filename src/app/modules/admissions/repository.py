"""
Admissions Repository

Database operations for applicants, courses, admin settings and the
notification log. All operations are async and follow the repository pattern
for clean separation between data access and business logic.

Design Principles:
- All queries are parameterized (no SQL injection)
- Async operations for non-blocking I/O
- Single responsibility - only database operations, no business logic
- Timezone-aware datetime handling (UTC)
- update_status is the only function that writes Applicant.status, and only
  the decision state machine calls it
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .helpers import format_admission_number
from .models import (
    AdminSetting,
    Applicant,
    ApplicantSource,
    ApplicantStatus,
    Course,
    NotificationKind,
    NotificationLog,
    SettingKey,
)
from .schemas import ApplicantCreate, CourseCreate


async def create(
    db: AsyncSession,
    data: ApplicantCreate,
    *,
    admission_number: str,
    source: ApplicantSource,
) -> Applicant:
    """Create a new applicant in Pending status."""

    new_applicant = Applicant(
        full_name=data.full_name,
        email=str(data.email) if data.email else None,
        phone=data.phone,
        course=data.course,
        kcse_grade=data.kcse_grade,
        county=data.county,
        admission_number=admission_number,
        status=ApplicantStatus.PENDING,
        source=source,
    )

    db.add(new_applicant)
    await db.commit()
    await db.refresh(new_applicant)

    return new_applicant


async def get_by_id(db: AsyncSession, id: UUID) -> Applicant | None:
    """Get applicant by ID."""
    return await db.get(Applicant, id)


async def list_by_status(
    db: AsyncSession,
    status: ApplicantStatus | None = None,
) -> list[Applicant]:
    """List applicants, optionally filtered by status, oldest submission first."""
    stmt = select(Applicant).order_by(Applicant.submitted_at.asc())
    if status is not None:
        stmt = stmt.where(Applicant.status == status)

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_status(
    db: AsyncSession,
    id: UUID,
    status: ApplicantStatus,
) -> Applicant | None:
    """
    Persist a new status for an applicant.

    Args:
        db: Database session
        id: Applicant UUID
        status: New status to set

    Returns:
        The updated Applicant, or None if it no longer exists
    """
    applicant = await get_by_id(db, id)
    if applicant is None:
        return None

    applicant.status = status

    await db.commit()
    await db.refresh(applicant)

    return applicant


# ============================================
# Courses
# ============================================


async def get_course_by_name(db: AsyncSession, name: str) -> Course | None:
    """Get a course by its name (applicants reference courses by name)."""
    result = await db.execute(select(Course).where(Course.name == name))
    return result.scalar_one_or_none()


async def get_course_by_id(db: AsyncSession, id: UUID) -> Course | None:
    return await db.get(Course, id)


async def list_courses(db: AsyncSession) -> list[Course]:
    """List all courses by name."""
    result = await db.execute(select(Course).order_by(Course.name))
    return list(result.scalars().all())


async def create_course(db: AsyncSession, data: CourseCreate) -> Course:
    """Create a course."""
    course = Course(**data.model_dump())

    db.add(course)
    await db.commit()
    await db.refresh(course)

    return course


async def update_course(db: AsyncSession, course: Course, changes: dict[str, Any]) -> Course:
    """Apply field changes to a course."""
    for field, value in changes.items():
        setattr(course, field, value)

    await db.commit()
    await db.refresh(course)

    return course


async def delete_course(db: AsyncSession, course: Course) -> None:
    await db.delete(course)
    await db.commit()


# ============================================
# Admin Settings
# ============================================


async def get_setting(db: AsyncSession, key: SettingKey | str) -> str | None:
    """Get a setting value, or None if it has never been stored."""
    setting = await db.get(AdminSetting, _key(key))
    return setting.value if setting else None


async def set_setting(
    db: AsyncSession,
    key: SettingKey | str,
    value: str,
    description: str | None = None,
) -> AdminSetting:
    """Create or update a setting."""
    setting = await db.get(AdminSetting, _key(key))

    if setting is None:
        setting = AdminSetting(key=_key(key), value=value, description=description)
        db.add(setting)
    else:
        setting.value = value
        if description is not None:
            setting.description = description

    await db.commit()
    await db.refresh(setting)

    return setting


async def next_admission_number(
    db: AsyncSession,
    *,
    prefix: str,
    starting_number: int,
    year: int,
) -> str:
    """
    Reserve the next admission number.

    The counter row is locked for the duration of the transaction so two
    concurrent submissions never receive the same number.
    """
    key = SettingKey.ADMISSION_COUNTER.value
    result = await db.execute(
        select(AdminSetting).where(AdminSetting.key == key).with_for_update()
    )
    counter = result.scalar_one_or_none()

    if counter is None:
        number = starting_number
        db.add(AdminSetting(key=key, value=str(number), description="Last issued admission number"))
    else:
        number = max(int(counter.value) + 1, starting_number)
        counter.value = str(number)

    await db.commit()

    return format_admission_number(prefix, number, year)


def _key(key: SettingKey | str) -> str:
    return key.value if isinstance(key, SettingKey) else key


# ============================================
# Notification Log
# ============================================


async def create_notification_log(
    db: AsyncSession,
    *,
    kind: NotificationKind,
    recipient: str,
    subject: str,
    applicant_id: UUID | None,
    applicant_name: str,
    message_id: str | None,
    sent_at: datetime,
) -> NotificationLog:
    """Append a notification log entry for a delivered email."""

    entry = NotificationLog(
        kind=kind,
        recipient=recipient,
        subject=subject,
        applicant_id=applicant_id,
        applicant_name=applicant_name,
        message_id=message_id,
        status="sent",
        sent_at=sent_at,
    )

    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    return entry


async def list_notification_logs(
    db: AsyncSession,
    *,
    applicant_id: UUID | None = None,
    kind: NotificationKind | None = None,
    limit: int = 100,
) -> list[NotificationLog]:
    """List notification log entries, newest first."""
    stmt = select(NotificationLog).order_by(NotificationLog.sent_at.desc()).limit(limit)
    if applicant_id is not None:
        stmt = stmt.where(NotificationLog.applicant_id == applicant_id)
    if kind is not None:
        stmt = stmt.where(NotificationLog.kind == kind)

    result = await db.execute(stmt)
    return list(result.scalars().all())
