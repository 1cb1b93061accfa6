"""
Admission Letter Renderer

Renders the admission letter PDF using ReportLab.

The renderer is a pure function of its input: the same AdmissionLetterFields
always produce byte-identical output. The canvas is created in invariant
mode (fixed creation date and document id) and the issue date is an explicit
field rather than "today".
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from app.core.config import settings

logger = logging.getLogger(__name__)

CONTACT_OFFICE = "CONTACT OFFICE"
CURRENCY = "KES"

REQUIRED_FIELDS = ("full_name", "course", "admission_number")


class RenderError(Exception):
    """Raised when the admission letter cannot be rendered."""


@dataclass(frozen=True)
class AdmissionLetterFields:
    """Named fields filled into the admission letter."""

    full_name: str
    course: str
    admission_number: str
    issued_on: date
    reporting_date: str | None = None  # YYYY-MM-DD as stored in admin settings
    fee_balance: Decimal | float | None = None
    fee_per_year: Decimal | float | None = None


def format_letter_date(value: date) -> str:
    """Format a date the way it appears on the letter (DD/MM/YYYY)."""
    return value.strftime("%d/%m/%Y")


def format_reporting_date(reporting_date: str | None, issued_on: date) -> str:
    """
    Convert the stored reporting date (YYYY-MM-DD) to DD/MM/YYYY.

    Falls back to the issue date when no reporting date has been configured.

    Raises:
        RenderError: If the stored value is not a valid ISO date
    """
    if not reporting_date:
        return format_letter_date(issued_on)
    try:
        parsed = datetime.strptime(reporting_date.strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise RenderError(f"Invalid reporting date: {reporting_date!r}") from e
    return format_letter_date(parsed)


def format_fee(amount: Decimal | float | None) -> str:
    """Format a fee amount, or point the student to the office when unknown."""
    if not amount:
        return CONTACT_OFFICE
    formatted = f"{Decimal(str(amount)):,.2f}"
    if formatted.endswith(".00"):
        formatted = formatted[:-3]
    return f"{CURRENCY} {formatted}"


def _validate(fields: AdmissionLetterFields) -> None:
    missing = [name for name in REQUIRED_FIELDS if not str(getattr(fields, name) or "").strip()]
    if missing:
        raise RenderError(f"Missing admission letter fields: {', '.join(missing)}")


def render_admission_letter(fields: AdmissionLetterFields) -> bytes:
    """
    Render the admission letter for one student.

    Args:
        fields: The values to place on the letter

    Returns:
        PDF document bytes

    Raises:
        RenderError: If a required field is missing or a value cannot be formatted
    """
    _validate(fields)

    reporting_on = format_reporting_date(fields.reporting_date, fields.issued_on)
    issued_on = format_letter_date(fields.issued_on)
    fee_balance = format_fee(fields.fee_balance)
    fee_per_year = format_fee(fields.fee_per_year)

    buffer = BytesIO()
    try:
        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        pdf.setTitle(f"Admission Letter - {fields.admission_number}")
        pdf.setAuthor(settings.institute_name)

        width, height = A4
        left = 25 * mm
        y = height - 30 * mm

        # Letterhead
        pdf.setFillColor(colors.HexColor("#1a365d"))
        pdf.setFont("Helvetica-Bold", 18)
        pdf.drawCentredString(width / 2, y, settings.institute_name.upper())
        y -= 8 * mm
        pdf.setFont("Helvetica", 10)
        pdf.drawCentredString(
            width / 2, y, "Leading the leaders. Nurturing quality and affordable education."
        )
        y -= 4 * mm
        pdf.setStrokeColor(colors.HexColor("#1a365d"))
        pdf.line(left, y, width - left, y)

        pdf.setFillColor(colors.black)
        y -= 12 * mm
        pdf.setFont("Helvetica", 11)
        pdf.drawRightString(width - left, y, f"Date: {issued_on}")
        pdf.drawString(left, y, f"Ref: {fields.admission_number}")

        y -= 14 * mm
        pdf.setFont("Helvetica-Bold", 13)
        pdf.drawString(left, y, "OFFER OF ADMISSION")

        y -= 10 * mm
        pdf.setFont("Helvetica", 11)
        pdf.drawString(left, y, "Dear ")
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(left + 10 * mm, y, fields.full_name)

        body = [
            "We are pleased to inform you that you have been offered admission to pursue",
            f"{fields.course} at {settings.institute_name}.",
            "",
            f"Your admission number is {fields.admission_number}. Quote it in all correspondence.",
            f"You are expected to report on {reporting_on} with this letter.",
        ]
        pdf.setFont("Helvetica", 11)
        for line in body:
            y -= 7 * mm
            pdf.drawString(left, y, line)

        # Fee summary
        y -= 14 * mm
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(left, y, "FEE STRUCTURE")
        rows = [
            ("Student", fields.full_name),
            ("Course", fields.course),
            ("Admission number", fields.admission_number),
            ("Fee balance", fee_balance),
            ("Total fee per year", fee_per_year),
        ]
        for label, value in rows:
            y -= 8 * mm
            pdf.setFont("Helvetica", 11)
            pdf.drawString(left, y, label)
            pdf.setFont("Helvetica-Bold", 11)
            pdf.drawString(left + 55 * mm, y, str(value))

        y -= 20 * mm
        pdf.setFont("Helvetica", 11)
        pdf.drawString(left, y, "Yours faithfully,")
        y -= 12 * mm
        pdf.drawString(left, y, "Registrar, Admissions")

        pdf.showPage()
        pdf.save()
    except Exception as e:
        logger.error(f"Failed to render admission letter {fields.admission_number}: {e}")
        raise RenderError(f"Failed to generate admission PDF: {e}") from e

    return buffer.getvalue()
