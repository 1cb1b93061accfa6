"""
Auto-Approval Timers

One-shot timers that accept a pending applicant after the configured delay
unless an admin decides first.

Design Principles:
- One timer per applicant; scheduling again replaces the previous timer
- Timers live only in memory (APScheduler DateTrigger jobs); nothing about
  them is persisted
- A firing timer removes itself from the active set before its callback runs,
  so a later cancel is a harmless no-op
- The callback re-reads the applicant's status instead of trusting anything
  captured when the timer was armed
- After a restart, recover_all rebuilds the timer set from each pending
  applicant's submitted_at and the configured delay

Concurrency:
- All timer bookkeeping runs on the event loop thread with no await between
  reading and writing the active set
- Each firing runs as its own asyncio task (APScheduler asyncio executor), so
  one slow callback never delays other applicants' timers
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from apscheduler.jobstores.base import JobLookupError
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import async_session_maker
from app.modules.admissions import repository
from app.modules.admissions.errors import AdmissionServiceError, InvalidDelayError
from app.modules.admissions.helpers import is_valid_delay, minutes_since
from app.modules.admissions.models import ApplicantStatus

logger = logging.getLogger(__name__)

# Job ID prefix for auto-approval timers
JOB_ID_PREFIX = "auto_decision"


def _job_id(applicant_id: UUID) -> str:
    return f"{JOB_ID_PREFIX}:{applicant_id}"


@dataclass(frozen=True)
class PendingTimer:
    """An armed timer as seen from outside the scheduler."""

    applicant_id: UUID
    run_at: datetime


@dataclass
class _Timer:
    job: Job
    token: str
    run_at: datetime


class AutoDecisionScheduler:
    """
    Per-applicant auto-approval timers.

    Args:
        scheduler: The APScheduler instance that does the waiting
        on_fire: Coroutine called with the applicant id when a timer expires
        session_maker: Session factory used to list pending applicants on recovery
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        on_fire: Callable[[UUID], Awaitable[Any]],
        *,
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
    ):
        self._scheduler = scheduler
        self._on_fire = on_fire
        self._session_maker = session_maker
        self._timers: dict[UUID, _Timer] = {}

    def schedule(self, applicant_id: UUID, delay_minutes: float) -> datetime:
        """
        Arm (or re-arm) the timer for an applicant.

        Args:
            applicant_id: UUID of the applicant
            delay_minutes: Minutes from now until the timer fires, between 0 and
                MAX_DELAY_MINUTES

        Returns:
            The time the timer will fire

        Raises:
            InvalidDelayError: If delay_minutes is negative, too large or not finite
        """
        if not is_valid_delay(delay_minutes):
            raise InvalidDelayError(delay_minutes)

        self.cancel(applicant_id)

        run_at = datetime.now(UTC) + timedelta(minutes=delay_minutes)
        token = uuid.uuid4().hex
        job = self._scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=run_at),
            args=[applicant_id, token],
            id=_job_id(applicant_id),
            replace_existing=True,
        )
        self._timers[applicant_id] = _Timer(job=job, token=token, run_at=run_at)

        logger.info(
            f"Scheduled auto-approval for applicant {applicant_id} in {delay_minutes:.1f} minutes"
        )
        return run_at

    def cancel(self, applicant_id: UUID) -> bool:
        """
        Cancel the applicant's timer.

        Returns:
            True if a timer was cancelled, False if none was pending
        """
        timer = self._timers.pop(applicant_id, None)
        if timer is None:
            return False

        try:
            timer.job.remove()
        except JobLookupError:
            # Already handed to the executor; _fire will see the missing entry
            pass

        logger.info(f"Cancelled auto-approval for applicant {applicant_id}")
        return True

    def is_pending(self, applicant_id: UUID) -> bool:
        return applicant_id in self._timers

    def pending(self) -> list[PendingTimer]:
        """Snapshot of armed timers, soonest first."""
        timers = [
            PendingTimer(applicant_id=applicant_id, run_at=timer.run_at)
            for applicant_id, timer in self._timers.items()
        ]
        return sorted(timers, key=lambda t: t.run_at)

    async def _fire(self, applicant_id: UUID, token: str) -> None:
        timer = self._timers.get(applicant_id)
        if timer is None or timer.token != token:
            # Cancelled or superseded after APScheduler dispatched the job
            logger.debug(f"Stale auto-approval timer for applicant {applicant_id}, ignoring")
            return

        del self._timers[applicant_id]

        logger.info(f"Auto-approval timer fired for applicant {applicant_id}")
        await self._run_callback(applicant_id)

    async def _run_callback(self, applicant_id: UUID) -> None:
        try:
            await self._on_fire(applicant_id)
        except AdmissionServiceError as e:
            logger.error(f"Auto-approval failed for applicant {applicant_id}: {e.message}")

    async def recover_all(self, delay_minutes: float) -> dict[str, Any]:
        """
        Rebuild timers for every pending applicant after a restart.

        Applicants whose delay has already elapsed are processed immediately,
        in submission order; the rest are scheduled for the remaining time.

        Args:
            delay_minutes: The configured auto-approval delay

        Returns:
            Dict with recovery summary including:
            - executed_at: When recovery ran
            - recovered: Number of pending applicants found
            - fired: Applicants processed immediately
            - scheduled: Applicants given a timer
            - total_errors: Number of applicants that failed
        """
        executed_at = datetime.now(UTC)
        logger.info(f"Recovering auto-approval timers (delay: {delay_minutes} minutes)")

        async with self._session_maker() as db:
            pending = await repository.list_by_status(db, ApplicantStatus.PENDING)

        logger.info(f"Found {len(pending)} pending applicants to recover")

        results: dict[str, Any] = {
            "executed_at": executed_at.isoformat(),
            "recovered": len(pending),
            "fired": 0,
            "scheduled": 0,
            "total_errors": 0,
        }

        for applicant in pending:
            try:
                elapsed = minutes_since(applicant.submitted_at, executed_at)
                if elapsed >= delay_minutes:
                    logger.info(
                        f"Processing overdue auto-approval for applicant {applicant.id} "
                        f"({elapsed:.1f} minutes since submission)"
                    )
                    self.cancel(applicant.id)
                    await self._run_callback(applicant.id)
                    results["fired"] += 1
                else:
                    self.schedule(applicant.id, delay_minutes - elapsed)
                    results["scheduled"] += 1
            except Exception as e:
                logger.error(
                    f"Error recovering auto-approval for applicant {applicant.id}: {e}",
                    exc_info=True,
                )
                results["total_errors"] += 1

        logger.info(
            f"Auto-approval recovery completed. Fired: {results['fired']}, "
            f"Scheduled: {results['scheduled']}, Errors: {results['total_errors']}"
        )

        return results

    def shutdown(self) -> int:
        """
        Cancel every armed timer.

        This discards in-memory state only; pending applicants stay pending
        and are picked up again by recover_all on the next start.

        Returns:
            Number of timers cancelled
        """
        applicant_ids = list(self._timers)
        for applicant_id in applicant_ids:
            self.cancel(applicant_id)

        logger.info(f"Cleared {len(applicant_ids)} auto-approval timers")
        return len(applicant_ids)
