"""
Admissions Router

Public endpoint for self-service applications. No authentication is
required since applicants have no account.

Endpoints:
- POST /applications - Submit a new application
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.modules.admissions.errors import AdmissionServiceError
from app.modules.admissions.models import ApplicantSource
from app.modules.admissions.schemas import ApplicantCreate, ApplicationSubmittedResponse
from app.modules.admissions.service import AdmissionsService, get_admissions_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ApplicationSubmittedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Application",
    description="""
Submit a new application for admission.

After submission:
1. The applicant is stored as `Pending` with a freshly issued admission number
2. A confirmation email is sent if an email address was given
3. In automatic approval mode, the applicant is accepted after the configured
   delay unless an admin decides first

**Response:**
Returns the applicant ID, admission number and whether an automatic decision
was scheduled.
""",
    responses={
        201: {
            "description": "Application received",
            "model": ApplicationSubmittedResponse,
        },
        422: {
            "description": "Validation error - request body format",
        },
    },
)
async def submit_application(
    data: ApplicantCreate,
    db: AsyncSession = Depends(get_db),
    admissions: AdmissionsService = Depends(get_admissions_service),
) -> ApplicationSubmittedResponse:
    """
    Submit a new application.

    Args:
        data: Applicant profile
        db: Database session (injected)
        admissions: Admissions service (injected)

    Returns:
        Applicant ID, admission number and scheduling information
    """
    try:
        applicant, scheduled = await admissions.submit_application(
            db, data, ApplicantSource.SELF_SERVICE
        )

        logger.info(
            f"Application submitted successfully: id={applicant.id}, course={applicant.course}"
        )

        return ApplicationSubmittedResponse(
            id=applicant.id,
            admission_number=applicant.admission_number,
            status=applicant.status,
            auto_decision_scheduled=scheduled,
            message="Application received. You will be notified by email once a decision is made.",
        )

    except AdmissionServiceError as e:
        logger.error(f"Admissions service error: {e.message}")
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code,
                "message": e.message,
            },
        ) from e
    except Exception as e:
        logger.exception(f"Unexpected error submitting application: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e
