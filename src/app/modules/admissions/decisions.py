"""
Admission Decision State Machine

Owns every change to Applicant.status. Two drivers use it: admins (manual
accept / reject / reset) and the auto-approval timer.

    Pending --accept--> Accepted
    Pending --reject--> Rejected
    any     --reset---> Pending      (never re-arms a timer)
    Accepted <-> Rejected            (an admin overriding an earlier decision)

Every transition:
1. Runs under a per-applicant lock, so "re-read status then write" cannot
   interleave with another transition for the same applicant. Different
   applicants never share a lock.
2. Cancels the applicant's pending auto-approval timer.
3. Optionally checks an expected current status (the timer passes Pending)
   and becomes a no-op when it no longer matches.
4. Persists the new status; a failed write raises PersistenceError and the
   transition is not applied.
5. On entering Accepted, starts the notification pipeline as a background
   task. Notification failures are logged and never undo the decision.
"""

import asyncio
import logging
import weakref
from functools import partial
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import async_session_maker
from app.core.documents import RenderError
from app.core.email import TransportError
from app.modules.admissions import repository
from app.modules.admissions.errors import ApplicantNotFoundError, PersistenceError
from app.modules.admissions.helpers import has_usable_email
from app.modules.admissions.models import Applicant, ApplicantStatus
from app.modules.admissions.notifications import NotificationOutcome, send_admission_for

logger = logging.getLogger(__name__)

Notifier = Callable[[Applicant], Awaitable[NotificationOutcome]]


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of a background admission notification."""

    sent: bool
    outcome: NotificationOutcome | None = None
    # Set on failure, or when a delivered letter could not be logged
    error: str | None = None


@dataclass
class TransitionResult:
    """Result of a call to DecisionStateMachine.transition."""

    applicant: Applicant
    previous_status: ApplicantStatus
    changed: bool
    notification: "asyncio.Task[NotificationResult] | None" = None


class DecisionStateMachine:
    """Applies status transitions and triggers admission notifications."""

    def __init__(
        self,
        *,
        cancel_timer: Callable[[UUID], bool],
        session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
        notifier: Notifier | None = None,
    ):
        self._cancel_timer = cancel_timer
        self._session_maker = session_maker
        self._notifier = notifier or partial(send_admission_for, session_maker=session_maker)
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._background: set[asyncio.Task] = set()

    def _lock_for(self, applicant_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(applicant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[applicant_id] = lock
        return lock

    async def transition(
        self,
        applicant_id: UUID,
        target_status: ApplicantStatus,
        *,
        expected_status: ApplicantStatus | None = None,
    ) -> TransitionResult:
        """
        Move an applicant to `target_status`.

        Args:
            applicant_id: UUID of the applicant
            target_status: Status to move to
            expected_status: If given, only transition when the current status
                still equals it; otherwise return an unchanged result

        Returns:
            TransitionResult. `notification` is a task when an admission letter
            is being sent.

        Raises:
            ApplicantNotFoundError: If the applicant doesn't exist
            PersistenceError: If the status could not be saved
        """
        lock = self._lock_for(applicant_id)
        async with lock:
            if self._cancel_timer(applicant_id):
                logger.info(f"Cancelled auto-approval timer for applicant {applicant_id}")

            try:
                async with self._session_maker() as db:
                    applicant = await repository.get_by_id(db, applicant_id)
                    if applicant is None:
                        logger.warning(f"Applicant not found for transition: {applicant_id}")
                        raise ApplicantNotFoundError(applicant_id)

                    previous_status = applicant.status

                    if expected_status is not None and previous_status != expected_status:
                        logger.info(
                            f"Applicant {applicant_id} is {previous_status.value}, "
                            f"expected {expected_status.value}; skipping transition"
                        )
                        return TransitionResult(applicant, previous_status, changed=False)

                    if previous_status == target_status:
                        logger.info(
                            f"Applicant {applicant_id} already {target_status.value}, nothing to do"
                        )
                        return TransitionResult(applicant, previous_status, changed=False)

                    updated = await repository.update_status(db, applicant_id, target_status)
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to persist {target_status.value} for applicant {applicant_id}: {e}",
                    exc_info=True,
                )
                raise PersistenceError(applicant_id, str(e)) from e

            if updated is None:
                raise ApplicantNotFoundError(applicant_id)

            logger.info(
                f"Applicant {applicant_id} moved {previous_status.value} -> {target_status.value}"
            )

        notification = None
        if target_status == ApplicantStatus.ACCEPTED:
            if has_usable_email(updated):
                notification = self._start_notification(updated)
            else:
                logger.info(f"Applicant {applicant_id} has no email, admission letter not sent")

        return TransitionResult(updated, previous_status, changed=True, notification=notification)

    def _start_notification(self, applicant: Applicant) -> "asyncio.Task[NotificationResult]":
        task = asyncio.create_task(
            self._notify(applicant), name=f"admission_letter:{applicant.id}"
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _notify(self, applicant: Applicant) -> NotificationResult:
        try:
            outcome = await self._notifier(applicant)
        except RenderError as e:
            logger.error(f"Admission letter for applicant {applicant.id} could not be rendered: {e}")
            return NotificationResult(
                sent=False, error=f"Admission letter could not be generated: {e}"
            )
        except TransportError as e:
            logger.error(f"Admission letter for applicant {applicant.id} was not delivered: {e}")
            return NotificationResult(
                sent=False, error=f"Admission email was not delivered: {e.reason}"
            )
        except Exception as e:
            logger.error(
                f"Unexpected error notifying applicant {applicant.id}: {e}",
                exc_info=True,
            )
            return NotificationResult(sent=False, error=f"Admission notification failed: {e}")

        if not outcome.logged:
            return NotificationResult(
                sent=True,
                outcome=outcome,
                error=(
                    "Admission email was sent but could not be recorded "
                    "in the notification log."
                ),
            )

        return NotificationResult(sent=True, outcome=outcome)

    async def drain(self) -> None:
        """Wait for in-flight notifications to finish (used on shutdown)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)


async def wait_for_notification(
    task: "asyncio.Task[NotificationResult]",
    timeout: float,
) -> NotificationResult | None:
    """
    Wait up to `timeout` seconds for a background notification.

    Returns None if it is still running; the task keeps going either way.
    """
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()
    return None
