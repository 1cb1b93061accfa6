"""
Admissions Service Layer

Business logic for student admission applications.
Wires the decision state machine, the auto-approval timers and the
notification pipeline together, and exposes the hooks the rest of the
application calls:

1. on_application_submitted - arms a timer when automatic approval is on
2. on_manual_decision - cancels any timer and applies an admin's decision
3. on_process_start - rebuilds timers from pending applicants
4. on_process_stop - clears all timers

Also implemented:
- Applicant submission (self-service and manual entry)
- Decision settings read/update
- Course fee facts (list, add, update, remove)
- Explicit admission letter re-send
- Admission letter rendering for view/download

Settings changes are not retroactive: timers that are already armed keep
the delay that was in force when they were armed.
"""

import logging
from dataclasses import dataclass
from functools import partial
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.database import async_session_maker
from app.modules.admissions import repository
from app.modules.admissions.decisions import (
    DecisionStateMachine,
    Notifier,
    wait_for_notification,
)
from app.modules.admissions.errors import (
    ApplicantNotFoundError,
    CannotResendAdmissionError,
    CourseNotFoundError,
    DuplicateCourseError,
)
from app.modules.admissions.helpers import (
    has_usable_email,
    parse_approval_mode,
    parse_delay_minutes,
    parse_reporting_date,
)
from app.modules.admissions.jobs import AutoDecisionScheduler, PendingTimer
from app.modules.admissions.models import (
    Applicant,
    ApplicantSource,
    ApplicantStatus,
    ApprovalMode,
    Course,
    SettingKey,
)
from app.modules.admissions.notifications import (
    NotificationOutcome,
    render_admission_letter_for,
    send_admission_for,
    send_application_confirmation_for,
)
from app.modules.admissions.schemas import (
    ApplicantCreate,
    CourseCreate,
    CourseUpdate,
    DecisionSettings,
)

logger = logging.getLogger(__name__)


@dataclass
class DecisionOutcome:
    """What an admin sees after making a decision."""

    applicant: Applicant
    previous_status: ApplicantStatus
    changed: bool
    notification_sent: bool | None = None
    notification_warning: str | None = None


class AdmissionsService:
    """
    Entry point for the admissions decision workflow.

    One instance is created per process (in the FastAPI lifespan) and shared
    by all requests.
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        *,
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
        notifier: Notifier | None = None,
        notification_wait_seconds: float = settings.notification_wait_seconds,
    ):
        self._session_maker = session_maker
        self._notifier = notifier or partial(send_admission_for, session_maker=session_maker)
        self._notification_wait_seconds = notification_wait_seconds
        self.timers = AutoDecisionScheduler(
            scheduler,
            on_fire=self._on_timer_fired,
            session_maker=session_maker,
        )
        self.decisions = DecisionStateMachine(
            cancel_timer=self.timers.cancel,
            session_maker=session_maker,
            notifier=self._notifier,
        )

    # ============================================
    # Settings
    # ============================================

    async def get_decision_settings(self, db: AsyncSession | None = None) -> DecisionSettings:
        """Read approval mode, delay and reporting date, applying defaults."""
        if db is None:
            async with self._session_maker() as session:
                return await self.get_decision_settings(session)

        mode = await repository.get_setting(db, SettingKey.APPROVAL_MODE)
        delay = await repository.get_setting(db, SettingKey.AUTO_APPROVAL_DELAY)
        reporting_date = await repository.get_setting(db, SettingKey.REPORTING_DATE)

        return DecisionSettings(
            approval_mode=parse_approval_mode(
                mode, ApprovalMode(settings.default_approval_mode)
            ),
            auto_approval_delay_minutes=parse_delay_minutes(
                delay, settings.default_auto_approval_delay_minutes
            ),
            reporting_date=parse_reporting_date(reporting_date),
        )

    async def update_decision_settings(
        self,
        db: AsyncSession,
        data: DecisionSettings,
    ) -> DecisionSettings:
        """
        Store new decision settings.

        Already-armed timers are left untouched; the new delay applies to
        applications submitted from now on and to the next recovery sweep.
        """
        logger.info(
            f"Updating decision settings: mode={data.approval_mode.value}, "
            f"delay={data.auto_approval_delay_minutes}, reporting_date={data.reporting_date}"
        )
        await repository.set_setting(
            db, SettingKey.APPROVAL_MODE, data.approval_mode.value, "manual or automatic"
        )
        await repository.set_setting(
            db,
            SettingKey.AUTO_APPROVAL_DELAY,
            str(data.auto_approval_delay_minutes),
            "Minutes before a pending applicant is accepted automatically",
        )
        if data.reporting_date is not None:
            await repository.set_setting(
                db,
                SettingKey.REPORTING_DATE,
                data.reporting_date.isoformat(),
                "Reporting date printed on admission letters",
            )

        pending = len(self.timers.pending())
        if pending:
            logger.info(f"{pending} armed auto-approval timers keep their previous delay")

        return await self.get_decision_settings(db)

    # ============================================
    # Courses
    # ============================================

    async def list_courses(self, db: AsyncSession) -> list[Course]:
        return await repository.list_courses(db)

    async def create_course(self, db: AsyncSession, data: CourseCreate) -> Course:
        """
        Add a course and its fee facts.

        Raises:
            DuplicateCourseError: If a course with the same name exists
        """
        if await repository.get_course_by_name(db, data.name) is not None:
            raise DuplicateCourseError(data.name)

        course = await repository.create_course(db, data)
        logger.info(f"Created course {course.id}: {course.name}")
        return course

    async def update_course(
        self,
        db: AsyncSession,
        course_id: UUID,
        data: CourseUpdate,
    ) -> Course:
        """
        Change a course's name, fees or description.

        Applicants reference courses by name, so renaming a course means
        existing applicants on the old name no longer find its fee facts.

        Raises:
            CourseNotFoundError: If the course doesn't exist
            DuplicateCourseError: If the new name is taken by another course
        """
        course = await self._get_course(db, course_id)

        changes = data.model_dump(exclude_unset=True)
        if changes.get("name", course.name) is None:
            del changes["name"]

        new_name = changes.get("name")
        if new_name is not None and new_name != course.name:
            if await repository.get_course_by_name(db, new_name) is not None:
                raise DuplicateCourseError(new_name)
            logger.warning(
                f"Renaming course {course.name!r} to {new_name!r}; applicants on the old "
                f"name will get letters without fee facts"
            )

        course = await repository.update_course(db, course, changes)
        logger.info(f"Updated course {course.id}: {sorted(changes)}")
        return course

    async def delete_course(self, db: AsyncSession, course_id: UUID) -> None:
        """
        Remove a course.

        Raises:
            CourseNotFoundError: If the course doesn't exist
        """
        course = await self._get_course(db, course_id)
        await repository.delete_course(db, course)
        logger.info(f"Deleted course {course_id}: {course.name}")

    async def _get_course(self, db: AsyncSession, course_id: UUID) -> Course:
        course = await repository.get_course_by_id(db, course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        return course

    # ============================================
    # Submission
    # ============================================

    async def submit_application(
        self,
        db: AsyncSession,
        data: ApplicantCreate,
        source: ApplicantSource,
    ) -> tuple[Applicant, bool]:
        """
        Create a pending applicant, acknowledge it, and arm auto-approval.

        Returns:
            (applicant, auto_decision_scheduled)
        """
        logger.info(f"Submitting application for course {data.course!r} (source: {source.value})")

        admission_number = await repository.next_admission_number(
            db,
            prefix=settings.admission_number_prefix,
            starting_number=settings.admission_starting_number,
            year=datetime.now(UTC).year,
        )
        applicant = await repository.create(
            db, data, admission_number=admission_number, source=source
        )
        logger.info(f"Created applicant {applicant.id} with admission number {admission_number}")

        if source == ApplicantSource.SELF_SERVICE:
            await send_application_confirmation_for(
                applicant, session_maker=self._session_maker
            )

        run_at = await self.on_application_submitted(applicant.id)
        return applicant, run_at is not None

    async def on_application_submitted(self, applicant_id: UUID) -> datetime | None:
        """
        Arm the auto-approval timer if automatic mode is on.

        Returns:
            When the timer fires, or None in manual mode
        """
        decision_settings = await self.get_decision_settings()
        if decision_settings.approval_mode != ApprovalMode.AUTOMATIC:
            logger.debug(f"Manual approval mode, no timer for applicant {applicant_id}")
            return None

        return self.timers.schedule(applicant_id, decision_settings.auto_approval_delay_minutes)

    # ============================================
    # Decisions
    # ============================================

    async def _on_timer_fired(self, applicant_id: UUID) -> None:
        try:
            result = await self.decisions.transition(
                applicant_id,
                ApplicantStatus.ACCEPTED,
                expected_status=ApplicantStatus.PENDING,
            )
        except ApplicantNotFoundError:
            logger.warning(f"Applicant {applicant_id} not found for auto-approval")
            return

        if result.changed:
            logger.info(f"Auto-approved applicant {applicant_id}: {result.applicant.full_name}")

    async def on_manual_decision(
        self,
        applicant_id: UUID,
        decision: ApplicantStatus,
    ) -> DecisionOutcome:
        """
        Apply an admin's decision (accept, reject, or reset to Pending).

        Cancels any pending auto-approval first. When the decision sends an
        admission letter, waits a bounded time for the result so the admin
        can be warned about a failed email; the decision itself stands
        regardless.

        Raises:
            ApplicantNotFoundError: If the applicant doesn't exist
            PersistenceError: If the decision could not be saved
        """
        logger.info(f"Manual decision for applicant {applicant_id}: {decision.value}")

        result = await self.decisions.transition(applicant_id, decision)
        outcome = DecisionOutcome(
            applicant=result.applicant,
            previous_status=result.previous_status,
            changed=result.changed,
        )

        if result.notification is None:
            return outcome

        notification = await wait_for_notification(
            result.notification, self._notification_wait_seconds
        )
        if notification is None:
            outcome.notification_warning = (
                "Admission email is still being sent; check the notification log."
            )
        elif notification.sent:
            outcome.notification_sent = True
            outcome.notification_warning = notification.error
        else:
            outcome.notification_sent = False
            outcome.notification_warning = notification.error

        return outcome

    # ============================================
    # Lifecycle
    # ============================================

    async def on_process_start(self) -> dict[str, Any] | None:
        """Rebuild auto-approval timers from the database if automatic mode is on."""
        decision_settings = await self.get_decision_settings()
        if decision_settings.approval_mode != ApprovalMode.AUTOMATIC:
            logger.info("Auto-approval is disabled")
            return None

        return await self.timers.recover_all(decision_settings.auto_approval_delay_minutes)

    async def on_process_stop(self) -> int:
        """Clear all timers and let in-flight notifications finish."""
        cleared = self.timers.shutdown()
        await self.decisions.drain()
        return cleared

    def pending_decisions(self) -> list[PendingTimer]:
        return self.timers.pending()

    # ============================================
    # Admission letters
    # ============================================

    async def _get_applicant(self, db: AsyncSession, applicant_id: UUID) -> Applicant:
        applicant = await repository.get_by_id(db, applicant_id)
        if applicant is None:
            logger.warning(f"Applicant not found: {applicant_id}")
            raise ApplicantNotFoundError(applicant_id)
        return applicant

    async def resend_admission_letter(
        self,
        db: AsyncSession,
        applicant_id: UUID,
    ) -> NotificationOutcome:
        """
        Deliberately send the admission letter again.

        Raises:
            ApplicantNotFoundError: If the applicant doesn't exist
            CannotResendAdmissionError: If the applicant isn't accepted or has no email
            RenderError: If the letter cannot be rendered
            TransportError: If the email cannot be delivered
        """
        applicant = await self._get_applicant(db, applicant_id)

        if applicant.status != ApplicantStatus.ACCEPTED:
            raise CannotResendAdmissionError(f"applicant status is {applicant.status.value}")
        if not has_usable_email(applicant):
            raise CannotResendAdmissionError("applicant has no email address")

        logger.info(f"Re-sending admission letter to applicant {applicant_id}")
        return await self._notifier(applicant)

    async def render_admission_letter(
        self,
        db: AsyncSession,
        applicant_id: UUID,
    ) -> tuple[Applicant, bytes]:
        """Render the admission letter without sending or logging anything."""
        applicant = await self._get_applicant(db, applicant_id)
        return applicant, await render_admission_letter_for(
            applicant, session_maker=self._session_maker
        )


def get_admissions_service(request: Request) -> AdmissionsService:
    """FastAPI dependency returning the process-wide AdmissionsService."""
    return request.app.state.admissions
