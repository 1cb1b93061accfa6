"""
API tests for the admissions routers.

The app is exercised through FastAPI's TestClient without running the
lifespan; the admissions service is attached to app.state by the fixture.
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.core.database import get_db
from app.core.email import TransportError
from app.main import app
from app.modules.admissions.models import ApplicantStatus, NotificationKind
from app.modules.admissions.service import AdmissionsService


@pytest.fixture
def client(store, sent_letters):
    async def override_get_db():
        yield store.session_maker()

    # Manual approval mode never schedules, so the scheduler is never touched
    app.state.admissions = AdmissionsService(
        MagicMock(), session_maker=store.session_maker, notification_wait_seconds=2.0
    )
    app.state.scheduler = MagicMock(running=True)
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSubmitApplicationEndpoint:
    """Tests for POST /api/v1/applications."""

    def test_submit(self, client, store):
        with patch(
            "app.modules.admissions.notifications.send_application_confirmation",
            new_callable=AsyncMock,
            return_value="msg-confirm",
        ):
            response = client.post(
                "/api/v1/applications",
                json={
                    "full_name": "Peter Kamau",
                    "email": "peter@example.com",
                    "phone": "0700111222",
                    "course": "Certificate in Plumbing",
                },
            )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "Pending"
        assert body["admission_number"].startswith("EAVI/1000/")
        assert body["auto_decision_scheduled"] is False

    def test_missing_fields(self, client):
        response = client.post("/api/v1/applications", json={"full_name": "Peter Kamau"})

        assert response.status_code == 422


class TestApplicantEndpoints:
    """Tests for /api/v1/admin/applicants."""

    def test_list_filtered_by_status(self, client, store):
        pending = store.add_applicant(full_name="Pending Applicant")
        store.add_applicant(full_name="Accepted Applicant", status=ApplicantStatus.ACCEPTED)

        response = client.get("/api/v1/admin/applicants", params={"status": "Pending"})

        assert response.status_code == 200
        assert [a["id"] for a in response.json()] == [str(pending.id)]

    def test_get_unknown_applicant(self, client, store):
        response = client.get(f"/api/v1/admin/applicants/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "APPLICANT_NOT_FOUND"

    def test_manual_entry(self, client, store):
        response = client.post(
            "/api/v1/admin/applicants",
            json={"full_name": "Walk In", "phone": "0700000000", "course": "Certificate in Welding"},
        )

        assert response.status_code == 201
        assert response.json()["source"] == "manual"
        assert response.json()["email"] is None


class TestDecisionEndpoint:
    """Tests for POST /api/v1/admin/applicants/{id}/decision."""

    def test_accept(self, client, store, sent_letters):
        applicant = store.add_applicant()

        response = client.post(
            f"/api/v1/admin/applicants/{applicant.id}/decision", json={"decision": "Accepted"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["changed"] is True
        assert body["previous_status"] == "Pending"
        assert body["applicant"]["status"] == "Accepted"
        assert body["notification_sent"] is True
        sent_letters.assert_awaited_once()

    def test_accept_with_failed_email_still_succeeds(self, client, store, sent_letters):
        applicant = store.add_applicant()
        sent_letters.side_effect = TransportError(applicant.email, "mailbox full")

        response = client.post(
            f"/api/v1/admin/applicants/{applicant.id}/decision", json={"decision": "Accepted"}
        )

        assert response.status_code == 200
        assert response.json()["notification_sent"] is False
        assert "mailbox full" in response.json()["notification_warning"]
        assert store.status_of(applicant.id) == ApplicantStatus.ACCEPTED

    def test_accept_with_unlogged_email(self, client, store, sent_letters):
        applicant = store.add_applicant()
        store.fail_log_writes = True

        response = client.post(
            f"/api/v1/admin/applicants/{applicant.id}/decision", json={"decision": "Accepted"}
        )

        assert response.status_code == 200
        assert response.json()["notification_sent"] is True
        assert "notification log" in response.json()["notification_warning"]

    def test_unknown_applicant(self, client):
        response = client.post(
            f"/api/v1/admin/applicants/{uuid4()}/decision", json={"decision": "Rejected"}
        )

        assert response.status_code == 404

    def test_failed_write(self, client, store):
        applicant = store.add_applicant()
        store.fail_writes = True

        response = client.post(
            f"/api/v1/admin/applicants/{applicant.id}/decision", json={"decision": "Rejected"}
        )

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "PERSISTENCE_FAILED"

    def test_invalid_decision(self, client, store):
        applicant = store.add_applicant()

        response = client.post(
            f"/api/v1/admin/applicants/{applicant.id}/decision", json={"decision": "Maybe"}
        )

        assert response.status_code == 422


class TestAdmissionLetterEndpoints:
    """Tests for re-sending and viewing admission letters."""

    def test_resend_pending_applicant_conflicts(self, client, store):
        applicant = store.add_applicant()

        response = client.post(f"/api/v1/admin/applicants/{applicant.id}/resend-admission")

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "CANNOT_RESEND_ADMISSION"

    def test_resend_delivery_failure(self, client, store, sent_letters):
        applicant = store.add_applicant(status=ApplicantStatus.ACCEPTED)
        sent_letters.side_effect = TransportError(applicant.email, "bounced")

        response = client.post(f"/api/v1/admin/applicants/{applicant.id}/resend-admission")

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "DELIVERY_FAILED"

    def test_resend(self, client, store, sent_letters):
        applicant = store.add_applicant(status=ApplicantStatus.ACCEPTED)

        response = client.post(f"/api/v1/admin/applicants/{applicant.id}/resend-admission")

        assert response.status_code == 200
        assert response.json()["recipient"] == applicant.email
        assert len(store.logs_for(applicant.id, NotificationKind.ADMISSION_PDF)) == 1
        assert response.json()["logged"] is True

    def test_resend_not_logged(self, client, store, sent_letters):
        applicant = store.add_applicant(status=ApplicantStatus.ACCEPTED)
        store.fail_log_writes = True

        response = client.post(f"/api/v1/admin/applicants/{applicant.id}/resend-admission")

        assert response.status_code == 200
        assert response.json()["logged"] is False
        sent_letters.assert_awaited_once()

    def test_view_inline(self, client, store, sent_letters):
        applicant = store.add_applicant(status=ApplicantStatus.ACCEPTED)

        response = client.get(f"/api/v1/admin/applicants/{applicant.id}/admission-letter")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"].startswith("inline;")
        assert response.content.startswith(b"%PDF")
        sent_letters.assert_not_awaited()
        assert store.logs == []

    def test_download(self, client, store):
        applicant = store.add_applicant(status=ApplicantStatus.ACCEPTED)

        response = client.get(
            f"/api/v1/admin/applicants/{applicant.id}/admission-letter",
            params={"download": "true"},
        )

        assert response.headers["content-disposition"].startswith("attachment;")
        assert "Admission-Letter.pdf" in response.headers["content-disposition"]


class TestCourseEndpoints:
    """Tests for /api/v1/admin/courses."""

    def test_create_and_list(self, client, store):
        response = client.post(
            "/api/v1/admin/courses",
            json={
                "name": "Certificate in Plumbing",
                "fee_balance": "15000.00",
                "fee_per_year": "30000.00",
                "duration": "1 year",
            },
        )

        assert response.status_code == 201
        created = response.json()
        assert created["fee_balance"] == "15000.00"
        assert created["description"] is None

        response = client.get("/api/v1/admin/courses")

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [created["id"]]

    def test_create_duplicate(self, client, store, diploma_course):
        response = client.post("/api/v1/admin/courses", json={"name": diploma_course.name})

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "DUPLICATE_COURSE"

    def test_create_negative_fee_rejected(self, client):
        response = client.post(
            "/api/v1/admin/courses", json={"name": "Certificate in Welding", "fee_balance": "-1"}
        )

        assert response.status_code == 422

    def test_update(self, client, store, diploma_course):
        response = client.patch(
            f"/api/v1/admin/courses/{diploma_course.id}", json={"fee_balance": "40000.00"}
        )

        assert response.status_code == 200
        assert response.json()["fee_balance"] == "40000.00"
        assert response.json()["fee_per_year"] == "90000.00"

    def test_rename_conflict(self, client, store, diploma_course):
        other = store.add_course("Certificate in Plumbing")

        response = client.patch(
            f"/api/v1/admin/courses/{other.id}", json={"name": diploma_course.name}
        )

        assert response.status_code == 409

    def test_update_unknown(self, client):
        response = client.patch(f"/api/v1/admin/courses/{uuid4()}", json={"duration": "2 years"})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "COURSE_NOT_FOUND"

    def test_delete(self, client, store, diploma_course):
        response = client.delete(f"/api/v1/admin/courses/{diploma_course.id}")

        assert response.status_code == 204
        assert store.courses == {}
        assert client.delete(f"/api/v1/admin/courses/{diploma_course.id}").status_code == 404


class TestSettingsAndMonitoring:
    """Tests for settings, notification log and pending decisions."""

    def test_settings_round_trip(self, client, store):
        response = client.put(
            "/api/v1/admin/settings/decision",
            json={
                "approval_mode": "automatic",
                "auto_approval_delay_minutes": 15,
                "reporting_date": "2025-09-01",
            },
        )
        assert response.status_code == 200

        response = client.get("/api/v1/admin/settings/decision")
        assert response.json() == {
            "approval_mode": "automatic",
            "auto_approval_delay_minutes": 15.0,
            "reporting_date": "2025-09-01",
        }

    def test_non_positive_delay_rejected(self, client):
        response = client.put(
            "/api/v1/admin/settings/decision",
            json={"approval_mode": "automatic", "auto_approval_delay_minutes": 0},
        )

        assert response.status_code == 422

    @pytest.mark.parametrize("delay", [1e10, 60 * 24 * 365 + 1])
    def test_too_large_delay_rejected(self, client, store, delay):
        response = client.put(
            "/api/v1/admin/settings/decision",
            json={"approval_mode": "automatic", "auto_approval_delay_minutes": delay},
        )

        assert response.status_code == 422
        assert "auto_approval_delay" not in store.settings

    def test_notification_log(self, client, store, sent_letters):
        applicant = store.add_applicant()
        client.post(
            f"/api/v1/admin/applicants/{applicant.id}/decision", json={"decision": "Accepted"}
        )

        response = client.get(
            "/api/v1/admin/notifications", params={"kind": NotificationKind.ADMISSION_PDF.value}
        )

        assert response.status_code == 200
        [entry] = response.json()
        assert entry["applicant_id"] == str(applicant.id)
        assert entry["status"] == "sent"

    def test_pending_decisions_empty_in_manual_mode(self, client, store):
        store.add_applicant()

        response = client.get("/api/v1/admin/pending-decisions")

        assert response.status_code == 200
        assert response.json() == []

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_not_ready_without_running_scheduler(self, client):
        app.state.scheduler = MagicMock(running=False)

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "NOT_READY"

    def test_ready_reports_pending_decisions(self, client):
        response = client.get("/ready")

        assert response.json() == {"status": "ready", "pending_decisions": 0}
