"""
Admissions Admin Router

API endpoints for admission officers to manage applicants and the decision
workflow.

Endpoints:
- GET /admin/applicants - List applicants, optionally filtered by status
- POST /admin/applicants - Enter an applicant manually
- GET /admin/applicants/{id} - Get applicant details
- POST /admin/applicants/{id}/decision - Accept, reject, or reset to Pending
- POST /admin/applicants/{id}/resend-admission - Send the admission letter again
- GET /admin/applicants/{id}/admission-letter - View or download the letter
- GET /admin/courses - List courses
- POST /admin/courses - Add a course
- PATCH /admin/courses/{id} - Update a course
- DELETE /admin/courses/{id} - Remove a course
- GET /admin/settings/decision - Read decision settings
- PUT /admin/settings/decision - Update decision settings
- GET /admin/notifications - Notification log
- GET /admin/pending-decisions - Armed auto-approval timers
"""

import logging
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.documents import RenderError
from app.core.email import TransportError, build_admission_filename
from app.modules.admissions import repository
from app.modules.admissions.errors import AdmissionServiceError, ApplicantNotFoundError
from app.modules.admissions.models import ApplicantSource, ApplicantStatus, NotificationKind
from app.modules.admissions.schemas import (
    ApplicantCreate,
    ApplicantResponse,
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    DecisionRequest,
    DecisionResponse,
    DecisionSettings,
    NotificationLogResponse,
    PendingDecisionResponse,
    ResendAdmissionResponse,
)
from app.modules.admissions.service import AdmissionsService, get_admissions_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: AdmissionServiceError) -> None:
    """Convert service errors to HTTPExceptions."""
    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    )


def _handle_delivery_error(e: RenderError | TransportError) -> None:
    """Letter rendering and mail delivery failures are upstream failures."""
    raise HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={
            "error": "RENDER_FAILED" if isinstance(e, RenderError) else "DELIVERY_FAILED",
            "message": str(e),
        },
    )


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


# ============================================
# Applicants
# ============================================


@router.get(
    "/applicants",
    response_model=list[ApplicantResponse],
    summary="List Applicants",
    description="""
List applicants, oldest submission first.

**Query Parameters:**
- `status`: Filter by Pending, Accepted or Rejected
""",
)
async def list_applicants(
    applicant_status: ApplicantStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> list[ApplicantResponse]:
    try:
        applicants = await repository.list_by_status(db, applicant_status)
        return [ApplicantResponse.model_validate(a) for a in applicants]
    except Exception as e:
        logger.exception(f"Error listing applicants: {e}")
        raise _internal_error() from e


@router.post(
    "/applicants",
    response_model=ApplicantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enter Applicant Manually",
    description="""
Create an applicant on behalf of someone who applied in person or by phone.

The applicant starts as `Pending` and follows the same decision workflow as a
self-service application. No confirmation email is sent.
""",
)
async def create_applicant(
    data: ApplicantCreate,
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> ApplicantResponse:
    try:
        applicant, _ = await admissions.submit_application(db, data, ApplicantSource.MANUAL)

        logger.info(f"Manually entered applicant {applicant.id}")

        return ApplicantResponse.model_validate(applicant)

    except AdmissionServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error creating applicant: {e}")
        raise _internal_error() from e


@router.get(
    "/applicants/{applicant_id}",
    response_model=ApplicantResponse,
    summary="Get Applicant",
    responses={
        404: {
            "description": "Applicant not found",
        },
    },
)
async def get_applicant(
    applicant_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ApplicantResponse:
    applicant = await repository.get_by_id(db, applicant_id)
    if applicant is None:
        _handle_service_error(ApplicantNotFoundError(applicant_id))

    return ApplicantResponse.model_validate(applicant)


@router.post(
    "/applicants/{applicant_id}/decision",
    response_model=DecisionResponse,
    summary="Decide Applicant",
    description="""
Accept, reject, or reset an applicant to `Pending`.

Any pending auto-approval for the applicant is cancelled first. Accepting
sends the admission letter; if the email cannot be delivered the decision
still stands and `notification_warning` explains what went wrong.

Deciding an applicant who already has the requested status is a no-op
(`changed` is false) and sends nothing. Use the resend-admission endpoint to
send a letter again.
""",
    responses={
        404: {
            "description": "Applicant not found",
        },
        500: {
            "description": "Decision could not be saved",
        },
    },
)
async def decide_applicant(
    applicant_id: UUID,
    data: DecisionRequest,
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> DecisionResponse:
    try:
        outcome = await admissions.on_manual_decision(applicant_id, data.decision)

        logger.info(
            f"Decision {data.decision.value} for applicant {applicant_id} "
            f"(changed={outcome.changed}, notification_sent={outcome.notification_sent})"
        )

        return DecisionResponse(
            applicant=ApplicantResponse.model_validate(outcome.applicant),
            previous_status=outcome.previous_status,
            changed=outcome.changed,
            notification_sent=outcome.notification_sent,
            notification_warning=outcome.notification_warning,
        )

    except AdmissionServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error deciding applicant: {e}")
        raise _internal_error() from e


@router.post(
    "/applicants/{applicant_id}/resend-admission",
    response_model=ResendAdmissionResponse,
    summary="Resend Admission Letter",
    description="""
Render and email the admission letter again.

Only accepted applicants with an email address are eligible. Every successful
re-send is recorded in the notification log.
""",
    responses={
        404: {
            "description": "Applicant not found",
        },
        409: {
            "description": "Applicant is not accepted or has no email",
        },
        502: {
            "description": "Letter could not be rendered or delivered",
        },
    },
)
async def resend_admission(
    applicant_id: UUID,
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> ResendAdmissionResponse:
    try:
        outcome = await admissions.resend_admission_letter(db, applicant_id)

        return ResendAdmissionResponse(
            applicant_id=outcome.applicant_id,
            recipient=outcome.recipient,
            message_id=outcome.message_id,
            logged=outcome.logged,
        )

    except AdmissionServiceError as e:
        _handle_service_error(e)
    except (RenderError, TransportError) as e:
        logger.error(f"Re-send of admission letter failed for applicant {applicant_id}: {e}")
        _handle_delivery_error(e)
    except Exception as e:
        logger.exception(f"Error re-sending admission letter: {e}")
        raise _internal_error() from e


@router.get(
    "/applicants/{applicant_id}/admission-letter",
    summary="View Admission Letter",
    description="""
Render the admission letter as a PDF.

Shown inline by default; pass `download=true` to get it as an attachment.
Viewing never sends an email and never writes to the notification log.
""",
    response_class=Response,
    responses={
        200: {
            "content": {"application/pdf": {}},
            "description": "The admission letter",
        },
        404: {
            "description": "Applicant not found",
        },
        502: {
            "description": "Letter could not be rendered",
        },
    },
)
async def view_admission_letter(
    applicant_id: UUID,
    download: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> Response:
    try:
        applicant, pdf_bytes = await admissions.render_admission_letter(db, applicant_id)
    except AdmissionServiceError as e:
        _handle_service_error(e)
    except RenderError as e:
        logger.error(f"Admission letter for applicant {applicant_id} could not be rendered: {e}")
        _handle_delivery_error(e)

    disposition = "attachment" if download else "inline"
    filename = quote(build_admission_filename(applicant.full_name))

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"{disposition}; filename*=UTF-8''{filename}"},
    )


# ============================================
# Courses
# ============================================


@router.get(
    "/courses",
    response_model=list[CourseResponse],
    summary="List Courses",
)
async def list_courses(
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> list[CourseResponse]:
    try:
        courses = await admissions.list_courses(db)
        return [CourseResponse.model_validate(c) for c in courses]
    except Exception as e:
        logger.exception(f"Error listing courses: {e}")
        raise _internal_error() from e


@router.post(
    "/courses",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Course",
    description="""
Add a course with the fee facts printed on admission letters.

Applicants are matched to courses by name, so the name must be exactly what
applicants choose on the application form.
""",
    responses={
        409: {
            "description": "A course with this name already exists",
        },
    },
)
async def create_course(
    data: CourseCreate,
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> CourseResponse:
    try:
        course = await admissions.create_course(db, data)
        return CourseResponse.model_validate(course)

    except AdmissionServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error creating course: {e}")
        raise _internal_error() from e


@router.patch(
    "/courses/{course_id}",
    response_model=CourseResponse,
    summary="Update Course",
    description="""
Change a course's name, fees, duration or description. Fields that are not
sent are left unchanged.

New fees apply to letters sent or viewed from now on.
""",
    responses={
        404: {
            "description": "Course not found",
        },
        409: {
            "description": "Another course already has the new name",
        },
    },
)
async def update_course(
    course_id: UUID,
    data: CourseUpdate,
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> CourseResponse:
    try:
        course = await admissions.update_course(db, course_id, data)
        return CourseResponse.model_validate(course)

    except AdmissionServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error updating course: {e}")
        raise _internal_error() from e


@router.delete(
    "/courses/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove Course",
    responses={
        404: {
            "description": "Course not found",
        },
    },
)
async def delete_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> Response:
    try:
        await admissions.delete_course(db, course_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    except AdmissionServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error deleting course: {e}")
        raise _internal_error() from e


# ============================================
# Settings
# ============================================


@router.get(
    "/settings/decision",
    response_model=DecisionSettings,
    summary="Get Decision Settings",
)
async def get_decision_settings(
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> DecisionSettings:
    return await admissions.get_decision_settings(db)


@router.put(
    "/settings/decision",
    response_model=DecisionSettings,
    summary="Update Decision Settings",
    description="""
Switch between manual and automatic approval, change the auto-approval delay,
or set the reporting date printed on admission letters.

Changes apply to applications submitted afterwards. Auto-approvals that are
already scheduled keep the delay they were scheduled with.
""",
)
async def update_decision_settings(
    data: DecisionSettings,
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> DecisionSettings:
    try:
        return await admissions.update_decision_settings(db, data)
    except AdmissionServiceError as e:
        _handle_service_error(e)
    except Exception as e:
        logger.exception(f"Error updating decision settings: {e}")
        raise _internal_error() from e


# ============================================
# Monitoring
# ============================================


@router.get(
    "/notifications",
    response_model=list[NotificationLogResponse],
    summary="Notification Log",
)
async def list_notifications(
    applicant_id: UUID | None = Query(None),
    kind: NotificationKind | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> list[NotificationLogResponse]:
    entries = await repository.list_notification_logs(
        db, applicant_id=applicant_id, kind=kind, limit=limit
    )
    return [NotificationLogResponse.model_validate(entry) for entry in entries]


@router.get(
    "/pending-decisions",
    response_model=list[PendingDecisionResponse],
    summary="Scheduled Auto-Approvals",
)
async def list_pending_decisions(
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> list[PendingDecisionResponse]:
    return [
        PendingDecisionResponse(applicant_id=timer.applicant_id, run_at=timer.run_at)
        for timer in admissions.pending_decisions()
    ]
