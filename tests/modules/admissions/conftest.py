"""
Fixtures for admissions tests.

`store` replaces the repository module with an in-memory record store in
every admissions module that talks to the database, so the decision workflow
can be exercised end to end without PostgreSQL. Code under test receives
`store.session_maker` as its session factory.
"""

import asyncio
from contextlib import ExitStack
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from app.core.scheduler import create_scheduler
from app.modules.admissions.helpers import format_admission_number
from app.modules.admissions.models import (
    AdminSetting,
    Applicant,
    ApplicantSource,
    ApplicantStatus,
    Course,
    NotificationKind,
    NotificationLog,
    SettingKey,
)
from app.modules.admissions.notifications import NotificationOutcome

PATCHED_MODULES = (
    "app.modules.admissions.admin_router",
    "app.modules.admissions.decisions",
    "app.modules.admissions.jobs",
    "app.modules.admissions.notifications",
    "app.modules.admissions.service",
)


class FakeSession:
    """Stands in for an AsyncSession; the fake store ignores it."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeStore:
    """
    In-memory record store with the same call signatures as the repository.

    Every read and write yields to the event loop once, so concurrent
    transitions interleave the way they would against a real database.
    """

    def __init__(self):
        self.applicants: dict[UUID, Applicant] = {}
        self.courses: dict[str, Course] = {}
        self.settings: dict[str, str] = {}
        self.logs: list[NotificationLog] = []
        self.transitions: list[tuple[UUID, ApplicantStatus, ApplicantStatus]] = []
        self.fail_writes = False
        self.fail_log_writes = False
        self._counter: int | None = None

    def session_maker(self) -> FakeSession:
        return FakeSession()

    # Helpers used by tests

    def add_applicant(
        self,
        *,
        full_name: str = "Jane Wanjiru",
        email: str | None = "jane@example.com",
        course: str = "Diploma in Information Technology",
        status: ApplicantStatus = ApplicantStatus.PENDING,
        submitted_at: datetime | None = None,
    ) -> Applicant:
        applicant = Applicant(
            id=uuid4(),
            full_name=full_name,
            email=email,
            phone="0712345678",
            course=course,
            kcse_grade="B",
            county="Nairobi",
            admission_number=format_admission_number("EAVI", 1000 + len(self.applicants), 2025),
            status=status,
            source=ApplicantSource.SELF_SERVICE,
            submitted_at=submitted_at or datetime.now(UTC),
        )
        self.applicants[applicant.id] = applicant
        return applicant

    def add_course(self, name: str, fee_balance=None, fee_per_year=None) -> Course:
        course = Course(id=uuid4(), name=name, fee_balance=fee_balance, fee_per_year=fee_per_year)
        self.courses[name] = course
        return course

    def status_of(self, applicant_id: UUID) -> ApplicantStatus:
        return self.applicants[applicant_id].status

    def logs_for(self, applicant_id: UUID, kind: NotificationKind) -> list[NotificationLog]:
        return [log for log in self.logs if log.applicant_id == applicant_id and log.kind == kind]

    # Repository interface

    async def create(self, db, data, *, admission_number, source):
        await asyncio.sleep(0)
        applicant = Applicant(
            id=uuid4(),
            full_name=data.full_name,
            email=str(data.email) if data.email else None,
            phone=data.phone,
            course=data.course,
            kcse_grade=data.kcse_grade,
            county=data.county,
            admission_number=admission_number,
            status=ApplicantStatus.PENDING,
            source=source,
            submitted_at=datetime.now(UTC),
        )
        self.applicants[applicant.id] = applicant
        return applicant

    async def get_by_id(self, db, id):
        await asyncio.sleep(0)
        return self.applicants.get(id)

    async def list_by_status(self, db, status=None):
        await asyncio.sleep(0)
        applicants = [a for a in self.applicants.values() if status is None or a.status == status]
        return sorted(applicants, key=lambda a: a.submitted_at)

    async def update_status(self, db, id, status):
        await asyncio.sleep(0)
        if self.fail_writes:
            raise OperationalError("UPDATE applicants", {}, Exception("connection lost"))
        applicant = self.applicants.get(id)
        if applicant is None:
            return None
        self.transitions.append((id, applicant.status, status))
        applicant.status = status
        return applicant

    async def get_course_by_name(self, db, name):
        await asyncio.sleep(0)
        return self.courses.get(name)

    async def get_course_by_id(self, db, id):
        await asyncio.sleep(0)
        return next((c for c in self.courses.values() if c.id == id), None)

    async def list_courses(self, db):
        await asyncio.sleep(0)
        return sorted(self.courses.values(), key=lambda c: c.name)

    async def create_course(self, db, data):
        await asyncio.sleep(0)
        course = Course(id=uuid4(), **data.model_dump())
        self.courses[course.name] = course
        return course

    async def update_course(self, db, course, changes):
        await asyncio.sleep(0)
        del self.courses[course.name]
        for field, value in changes.items():
            setattr(course, field, value)
        self.courses[course.name] = course
        return course

    async def delete_course(self, db, course):
        await asyncio.sleep(0)
        del self.courses[course.name]

    async def get_setting(self, db, key):
        await asyncio.sleep(0)
        return self.settings.get(key.value if isinstance(key, SettingKey) else key)

    async def set_setting(self, db, key, value, description=None):
        await asyncio.sleep(0)
        key = key.value if isinstance(key, SettingKey) else key
        self.settings[key] = value
        return AdminSetting(key=key, value=value, description=description)

    async def next_admission_number(self, db, *, prefix, starting_number, year):
        await asyncio.sleep(0)
        self._counter = starting_number if self._counter is None else self._counter + 1
        return format_admission_number(prefix, self._counter, year)

    async def create_notification_log(
        self, db, *, kind, recipient, subject, applicant_id, applicant_name, message_id, sent_at
    ):
        await asyncio.sleep(0)
        if self.fail_log_writes:
            raise OperationalError("INSERT INTO email_logs", {}, Exception("disk full"))
        entry = NotificationLog(
            id=uuid4(),
            kind=kind,
            recipient=recipient,
            subject=subject,
            applicant_id=applicant_id,
            applicant_name=applicant_name,
            message_id=message_id,
            status="sent",
            sent_at=sent_at,
        )
        self.logs.append(entry)
        return entry

    async def list_notification_logs(self, db, *, applicant_id=None, kind=None, limit=100):
        await asyncio.sleep(0)
        entries = [
            log
            for log in self.logs
            if (applicant_id is None or log.applicant_id == applicant_id)
            and (kind is None or log.kind == kind)
        ]
        return sorted(entries, key=lambda log: log.sent_at, reverse=True)[:limit]


@pytest.fixture
def store():
    """In-memory record store patched in for the repository module."""
    fake = FakeStore()
    with ExitStack() as stack:
        for module in PATCHED_MODULES:
            stack.enter_context(patch(f"{module}.repository", fake))
        yield fake


@pytest.fixture
def sent_letters():
    """Replaces the admission letter transport; records every delivery."""
    mock_send = AsyncMock(side_effect=lambda **kwargs: f"msg-{uuid4()}")
    with patch("app.modules.admissions.notifications.send_admission_letter", mock_send):
        yield mock_send


@pytest.fixture
def notifier():
    """A notifier that succeeds without rendering or sending anything."""

    async def _notify(applicant):
        return NotificationOutcome(
            applicant_id=applicant.id,
            recipient=applicant.email,
            subject=f"Congratulations! Your Admission to EAVI - {applicant.admission_number}",
            message_id=f"msg-{applicant.id}",
            sent_at=datetime.now(UTC),
        )

    return AsyncMock(side_effect=_notify)


@pytest_asyncio.fixture
async def scheduler():
    """A real AsyncIOScheduler bound to the test's event loop."""
    aps = create_scheduler()
    aps.start()
    yield aps
    aps.shutdown(wait=False)


@pytest.fixture
def automatic_mode(store):
    """Store settings for automatic approval with a five minute delay."""
    store.settings[SettingKey.APPROVAL_MODE.value] = "automatic"
    store.settings[SettingKey.AUTO_APPROVAL_DELAY.value] = "5"
    return store


@pytest.fixture
def diploma_course(store):
    return store.add_course(
        "Diploma in Information Technology",
        fee_balance=Decimal("45000.00"),
        fee_per_year=Decimal("90000.00"),
    )
