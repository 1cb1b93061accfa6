"""
Admissions Shared Helpers

Common utility functions used across the admissions module.
These helpers are extracted to avoid code duplication between the decision,
notification and job modules.
"""

import logging
import math
from datetime import UTC, date, datetime

from app.core.documents import AdmissionLetterFields
from app.modules.admissions.models import Applicant, ApprovalMode, Course

logger = logging.getLogger(__name__)

# Longest auto-approval delay accepted anywhere (one year)
MAX_DELAY_MINUTES = 60 * 24 * 365


def format_admission_number(prefix: str, number: int, year: int) -> str:
    """
    Format an admission number, e.g. EAVI/1000/25.

    Args:
        prefix: Institute prefix
        number: Sequential number (zero padded to four digits)
        year: Calendar year of admission (last two digits are used)

    Returns:
        The formatted admission number
    """
    return f"{prefix}/{number:04d}/{year % 100:02d}"


def has_usable_email(applicant: Applicant) -> bool:
    """Whether the applicant has an address the letter can be mailed to."""
    email = (applicant.email or "").strip()
    return "@" in email


def minutes_since(moment: datetime, now: datetime | None = None) -> float:
    """
    Minutes elapsed since `moment`.

    Naive datetimes are treated as UTC, matching how the database stores
    submission times.
    """
    now = now or datetime.now(UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return (now - moment).total_seconds() / 60


def parse_approval_mode(value: str | None, default: ApprovalMode) -> ApprovalMode:
    """Parse a stored approval mode, falling back to the default."""
    if not value:
        return default
    try:
        return ApprovalMode(value.strip().lower())
    except ValueError:
        logger.warning(f"Unknown approval mode setting {value!r}, using {default.value}")
        return default


def parse_delay_minutes(value: str | None, default: float) -> float:
    """Parse a stored auto-approval delay, falling back to the default."""
    if not value:
        return default
    try:
        delay = float(value)
    except ValueError:
        logger.warning(f"Invalid auto-approval delay setting {value!r}, using {default}")
        return default
    if not is_valid_delay(delay) or delay == 0:
        logger.warning(f"Auto-approval delay {delay} out of range, using {default}")
        return default
    return delay


def is_valid_delay(delay_minutes: float) -> bool:
    """Whether a delay is a finite number of minutes in [0, MAX_DELAY_MINUTES]."""
    return math.isfinite(delay_minutes) and 0 <= delay_minutes <= MAX_DELAY_MINUTES


def parse_reporting_date(value: str | None) -> date | None:
    """Parse a stored reporting date (YYYY-MM-DD); anything else reads as unset."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.warning(f"Invalid reporting date setting {value!r}, treating it as unset")
        return None


def build_letter_fields(
    applicant: Applicant,
    course: Course | None,
    reporting_date: str | None,
    issued_on: date,
) -> AdmissionLetterFields:
    """
    Build the admission letter input from an applicant and its course facts.

    A missing course leaves the fee fields empty; the letter then tells the
    student to contact the office.
    """
    return AdmissionLetterFields(
        full_name=applicant.full_name,
        course=applicant.course,
        admission_number=applicant.admission_number,
        issued_on=issued_on,
        reporting_date=reporting_date,
        fee_balance=course.fee_balance if course else None,
        fee_per_year=course.fee_per_year if course else None,
    )
