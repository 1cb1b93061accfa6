"""
Admission Notification Pipeline

Renders the admission letter, mails it, and records the delivery:

1. Build the letter fields from the applicant, course fee facts and
   reporting date, and render the PDF (RenderError aborts; nothing is sent
   and nothing is logged).
2. Send the letter through the mail transport (TransportError propagates;
   no automatic retry and no log entry).
3. On success append a notification log entry of kind admission_pdf.

notify_acceptance is not idempotent on its own - calling it twice sends two
emails. It is only invoked on an actual transition into Accepted and by the
explicit re-send operation.

A log write that fails after a successful send is reported on the outcome
(logged=False) instead of as a delivery failure; the email has gone out.

Every function takes the session factory to use for its reads and writes.

The view/download path (render_admission_letter_for) renders only: it never
touches the mail transport and never writes a log entry.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import async_session_maker
from app.core.documents import render_admission_letter
from app.core.email import (
    APPLICATION_CONFIRMATION_SUBJECT,
    TransportError,
    build_admission_subject,
    send_admission_letter,
    send_application_confirmation,
)
from app.modules.admissions import repository
from app.modules.admissions.helpers import build_letter_fields, has_usable_email
from app.modules.admissions.models import Applicant, Course, NotificationKind, SettingKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationOutcome:
    """A delivered admission letter."""

    applicant_id: UUID
    recipient: str
    subject: str
    message_id: str
    sent_at: datetime
    logged: bool = True


async def notify_acceptance(
    applicant: Applicant,
    course: Course | None,
    reporting_date: str | None,
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    issued_on: date | None = None,
) -> NotificationOutcome:
    """
    Render and mail the admission letter for one accepted applicant.

    Args:
        applicant: The accepted applicant (must have an email address)
        course: Fee facts for the applicant's course, if the course is known
        reporting_date: Reporting date setting (YYYY-MM-DD), if configured
        session_maker: Session factory for the log write
        issued_on: Date printed on the letter, defaults to today (UTC)

    Returns:
        NotificationOutcome for the delivered email

    Raises:
        RenderError: If the letter cannot be rendered
        TransportError: If the email cannot be delivered
    """
    issued_on = issued_on or datetime.now(UTC).date()
    fields = build_letter_fields(applicant, course, reporting_date, issued_on)

    # ReportLab is CPU bound; keep it off the event loop
    pdf_bytes = await asyncio.to_thread(render_admission_letter, fields)
    logger.info(
        f"Rendered admission letter for applicant {applicant.id} ({len(pdf_bytes) // 1024}KB)"
    )

    message_id = await send_admission_letter(
        to_email=applicant.email,
        full_name=applicant.full_name,
        course=applicant.course,
        admission_number=applicant.admission_number,
        pdf_bytes=pdf_bytes,
    )

    subject = build_admission_subject(applicant.admission_number)
    sent_at = datetime.now(UTC)

    logged = await _record_delivery(
        session_maker,
        kind=NotificationKind.ADMISSION_PDF,
        recipient=applicant.email,
        subject=subject,
        applicant=applicant,
        message_id=message_id,
        sent_at=sent_at,
    )

    logger.info(f"Admission letter sent to applicant {applicant.id}, message id {message_id}")

    return NotificationOutcome(
        applicant_id=applicant.id,
        recipient=applicant.email,
        subject=subject,
        message_id=message_id,
        sent_at=sent_at,
        logged=logged,
    )


async def _record_delivery(
    session_maker: async_sessionmaker[AsyncSession] | None,
    *,
    kind: NotificationKind,
    recipient: str,
    subject: str,
    applicant: Applicant,
    message_id: str,
    sent_at: datetime,
) -> bool:
    """Append a notification log entry. Returns False if the write failed."""
    try:
        async with (session_maker or async_session_maker)() as db:
            await repository.create_notification_log(
                db,
                kind=kind,
                recipient=recipient,
                subject=subject,
                applicant_id=applicant.id,
                applicant_name=applicant.full_name,
                message_id=message_id,
                sent_at=sent_at,
            )
    except SQLAlchemyError as e:
        logger.error(
            f"Sent {kind.value} email {message_id} to applicant {applicant.id} "
            f"but could not record it: {e}",
            exc_info=True,
        )
        return False
    return True


async def _load_letter_context(
    db: AsyncSession, applicant: Applicant
) -> tuple[Course | None, str | None]:
    course = await repository.get_course_by_name(db, applicant.course)
    if course is None:
        logger.warning(
            f"Course {applicant.course!r} not found for applicant {applicant.id}, "
            "fees will read CONTACT OFFICE"
        )
    reporting_date = await repository.get_setting(db, SettingKey.REPORTING_DATE)
    return course, reporting_date


async def send_admission_for(
    applicant: Applicant,
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> NotificationOutcome:
    """Look up course facts and reporting date, then run notify_acceptance."""
    async with (session_maker or async_session_maker)() as db:
        course, reporting_date = await _load_letter_context(db, applicant)

    return await notify_acceptance(
        applicant, course, reporting_date, session_maker=session_maker
    )


async def render_admission_letter_for(
    applicant: Applicant,
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> bytes:
    """Render the admission letter for viewing or download. Never sends, never logs."""
    async with (session_maker or async_session_maker)() as db:
        course, reporting_date = await _load_letter_context(db, applicant)

    fields = build_letter_fields(applicant, course, reporting_date, datetime.now(UTC).date())
    return await asyncio.to_thread(render_admission_letter, fields)


async def send_application_confirmation_for(
    applicant: Applicant,
    *,
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> bool:
    """
    Acknowledge a new application by email.

    Delivery problems are logged and reported as False; a missing
    confirmation email never fails the submission.
    """
    if not has_usable_email(applicant):
        logger.info(f"Applicant {applicant.id} has no email, skipping confirmation")
        return False

    try:
        message_id = await send_application_confirmation(
            to_email=applicant.email,
            full_name=applicant.full_name,
            course=applicant.course,
            submitted_at=applicant.submitted_at,
        )
    except TransportError as e:
        logger.error(f"Application confirmation failed for applicant {applicant.id}: {e}")
        return False

    await _record_delivery(
        session_maker,
        kind=NotificationKind.APPLICATION_CONFIRMATION,
        recipient=applicant.email,
        subject=APPLICATION_CONFIRMATION_SUBJECT,
        applicant=applicant,
        message_id=message_id,
        sent_at=datetime.now(UTC),
    )

    return True
