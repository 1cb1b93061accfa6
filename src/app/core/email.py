"""
Email Service using Resend

Mail transport for admission notifications. Accepts a recipient, subject,
HTML body and an optional binary attachment, and returns the provider's
message id. Delivery failures raise TransportError; callers decide whether
that is fatal.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from html import escape

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = settings.resend_api_key

EMAIL_FROM = settings.email_from
INSTITUTE_NAME = settings.institute_name

CONTACT_PHONES = "0726022044 or 0748022044"
CONTACT_EMAIL = "info@eavi.ac.ke"

_BASE_STYLES = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #1a365d; margin-bottom: 24px; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


class TransportError(Exception):
    """Raised when the mail provider rejects or fails to deliver a message."""

    def __init__(self, to_email: str, reason: str):
        self.to_email = to_email
        self.reason = reason
        super().__init__(f"Failed to send email to {to_email}: {reason}")


@dataclass(frozen=True)
class EmailAttachment:
    """Binary attachment sent alongside an email."""

    content: bytes
    filename: str
    mime_type: str = "application/pdf"


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
    attachment: EmailAttachment | None = None,
) -> str:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email
        attachment: Optional file to attach

    Returns:
        The provider message id

    Raises:
        TransportError: If the provider call fails
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(
            f"EMAIL TO: {to_email} | SUBJECT: {subject} | "
            f"ATTACHMENT: {attachment.filename if attachment else None}"
        )
        return f"logged-{uuid.uuid4()}"

    params: resend.Emails.SendParams = {
        "from": EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }
    if attachment is not None:
        params["attachments"] = [
            {
                "filename": attachment.filename,
                "content": list(attachment.content),
                "content_type": attachment.mime_type,
            }
        ]

    try:
        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        raise TransportError(to_email, str(e)) from e

    message_id = email["id"]
    logger.info(f"Email sent successfully to {to_email}, id: {message_id}")
    return message_id


def build_admission_subject(admission_number: str) -> str:
    """Subject line for the admission letter email."""
    return (
        f"Congratulations! Your Admission to {settings.institute_short_name} - {admission_number}"
    )


def build_admission_filename(full_name: str) -> str:
    """Attachment file name for an applicant's admission letter."""
    return f"{full_name}-Admission-Letter.pdf"


def render_admission_email(full_name: str, course: str, admission_number: str) -> str:
    """HTML body that accompanies the admission letter attachment."""
    safe_name = escape(full_name)
    safe_course = escape(course)
    safe_admission_number = escape(admission_number)

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
{_BASE_STYLES}
            .success-banner {{ background-color: #d1fae5; border: 1px solid #22c55e; padding: 16px; border-radius: 8px; margin: 16px 0; text-align: center; }}
            .details-box {{ background-color: #f9fafb; border: 1px solid #e5e7eb; padding: 16px; border-radius: 8px; margin: 16px 0; }}
            .steps {{ background-color: #f9fafb; padding: 16px; border-radius: 8px; margin: 16px 0; }}
            .steps ol {{ margin: 8px 0 0 0; padding-left: 20px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Congratulations, {safe_name}!</h1>

            <div class="success-banner">
                You have been admitted to <strong>{escape(INSTITUTE_NAME)}</strong>.
            </div>

            <div class="details-box">
                <p><strong>Course:</strong> {safe_course}</p>
                <p><strong>Admission Number:</strong> {safe_admission_number}</p>
            </div>

            <p>Your official admission letter is attached to this email as a PDF.</p>

            <div class="steps">
                <p><strong>Next Steps:</strong></p>
                <ol>
                    <li>Download and print the attached admission letter</li>
                    <li>Review the fee structure and reporting date in the letter</li>
                    <li>Report to the institute on the reporting date with the letter</li>
                </ol>
            </div>

            <p>For any questions call {CONTACT_PHONES} or write to {CONTACT_EMAIL}.</p>

            <div class="footer">
                <p>{escape(INSTITUTE_NAME)} Admissions Office</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_admission_letter(
    to_email: str,
    full_name: str,
    course: str,
    admission_number: str,
    pdf_bytes: bytes,
) -> str:
    """Send the admission letter PDF to an accepted applicant."""
    return await send_email(
        to_email=to_email,
        subject=build_admission_subject(admission_number),
        html_content=render_admission_email(full_name, course, admission_number),
        attachment=EmailAttachment(
            content=pdf_bytes,
            filename=build_admission_filename(full_name),
        ),
    )


APPLICATION_CONFIRMATION_SUBJECT = f"Application Received - {INSTITUTE_NAME}"


async def send_application_confirmation(
    to_email: str,
    full_name: str,
    course: str,
    submitted_at: datetime,
) -> str:
    """Acknowledge a newly submitted application."""
    safe_name = escape(full_name)
    safe_course = escape(course)
    applied_on = submitted_at.strftime("%B %d, %Y")

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
{_BASE_STYLES}
            .summary-box {{ background-color: #eff6ff; border: 1px solid #bfdbfe; padding: 16px; border-radius: 8px; margin: 16px 0; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Application Received</h1>

            <p>Dear {safe_name},</p>

            <p>Thank you for applying to <strong>{escape(INSTITUTE_NAME)}</strong>. Your application is now under review by our admissions team.</p>

            <div class="summary-box">
                <p><strong>Course:</strong> {safe_course}</p>
                <p><strong>Email:</strong> {escape(to_email)}</p>
                <p><strong>Applied Date:</strong> {applied_on}</p>
                <p><strong>Status:</strong> Under Review</p>
            </div>

            <p>If you are admitted you will receive your official admission letter by email.</p>

            <div class="footer">
                <p>Contact: {CONTACT_PHONES} | {CONTACT_EMAIL}</p>
                <p>{escape(INSTITUTE_NAME)} Admissions Team</p>
            </div>
        </div>
    </body>
    </html>
    """

    return await send_email(
        to_email=to_email,
        subject=APPLICATION_CONFIRMATION_SUBJECT,
        html_content=html_content,
    )
