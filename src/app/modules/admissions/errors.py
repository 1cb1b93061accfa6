"""
Admissions Service Errors

Errors raised by the admissions service layer. Each carries an error code and
an HTTP status so routers can convert them uniformly.

Rendering and mail delivery failures are defined next to their
implementations (app.core.documents.RenderError, app.core.email.TransportError)
and never travel through the status-transition path.
"""

from uuid import UUID

from app.modules.admissions.helpers import MAX_DELAY_MINUTES


class AdmissionServiceError(Exception):
    """Base exception for admissions service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ApplicantNotFoundError(AdmissionServiceError):
    """Raised when an applicant is not found."""

    def __init__(self, applicant_id: UUID | None = None):
        message = f"Applicant {applicant_id} not found" if applicant_id else "Applicant not found"
        super().__init__(
            message=message,
            error_code="APPLICANT_NOT_FOUND",
            status_code=404,
        )


class PersistenceError(AdmissionServiceError):
    """Raised when a status write fails. The transition was not applied."""

    def __init__(self, applicant_id: UUID, reason: str):
        super().__init__(
            message=f"Could not save decision for applicant {applicant_id}: {reason}",
            error_code="PERSISTENCE_FAILED",
            status_code=500,
        )


class CannotResendAdmissionError(AdmissionServiceError):
    """Raised when an admission letter re-send is requested for an ineligible applicant."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Cannot resend admission letter: {reason}",
            error_code="CANNOT_RESEND_ADMISSION",
            status_code=409,
        )


class CourseNotFoundError(AdmissionServiceError):
    """Raised when a course is not found."""

    def __init__(self, course_id: UUID):
        super().__init__(
            message=f"Course {course_id} not found",
            error_code="COURSE_NOT_FOUND",
            status_code=404,
        )


class DuplicateCourseError(AdmissionServiceError):
    """Raised when a course name is already taken."""

    def __init__(self, name: str):
        super().__init__(
            message=f"A course named {name!r} already exists",
            error_code="DUPLICATE_COURSE",
            status_code=409,
        )


class InvalidDelayError(AdmissionServiceError):
    """Raised when an auto-approval delay is negative, too large or not a finite number."""

    def __init__(self, delay_minutes: object):
        super().__init__(
            message=(
                f"Auto-approval delay must be between 0 and {MAX_DELAY_MINUTES} minutes, "
                f"got {delay_minutes!r}"
            ),
            error_code="INVALID_DELAY",
            status_code=400,
        )
