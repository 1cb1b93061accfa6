"""
Unit tests for the mail transport.

The Resend SDK is mocked; no email is sent.
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from app.core.email import (
    EmailAttachment,
    TransportError,
    build_admission_filename,
    build_admission_subject,
    send_admission_letter,
    send_application_confirmation,
    send_email,
)


@pytest.fixture
def mock_resend():
    with patch("app.core.email.resend") as resend:
        resend.api_key = "re_test_key"
        resend.Emails.send = MagicMock(return_value={"id": "msg-123"})
        yield resend


class TestSendEmail:
    """Tests for send_email."""

    @pytest.mark.asyncio
    async def test_returns_provider_message_id(self, mock_resend):
        message_id = await send_email("jane@example.com", "Hello", "<p>Hi</p>")

        assert message_id == "msg-123"
        params = mock_resend.Emails.send.call_args[0][0]
        assert params["to"] == ["jane@example.com"]
        assert params["subject"] == "Hello"
        assert "attachments" not in params

    @pytest.mark.asyncio
    async def test_attachment_passed_as_byte_list(self, mock_resend):
        attachment = EmailAttachment(content=b"%PDF-1", filename="letter.pdf")

        await send_email("jane@example.com", "Hello", "<p>Hi</p>", attachment)

        params = mock_resend.Emails.send.call_args[0][0]
        assert params["attachments"] == [
            {
                "filename": "letter.pdf",
                "content": list(b"%PDF-1"),
                "content_type": "application/pdf",
            }
        ]

    @pytest.mark.asyncio
    async def test_provider_failure_raises_transport_error(self, mock_resend):
        mock_resend.Emails.send.side_effect = RuntimeError("rate limited")

        with pytest.raises(TransportError) as exc_info:
            await send_email("jane@example.com", "Hello", "<p>Hi</p>")

        assert exc_info.value.to_email == "jane@example.com"
        assert exc_info.value.reason == "rate limited"

    @pytest.mark.asyncio
    async def test_without_api_key_logs_instead_of_sending(self, mock_resend):
        mock_resend.api_key = None

        message_id = await send_email("jane@example.com", "Hello", "<p>Hi</p>")

        assert message_id.startswith("logged-")
        mock_resend.Emails.send.assert_not_called()


class TestAdmissionLetterEmail:
    """Tests for the admission letter email."""

    def test_subject(self):
        assert (
            build_admission_subject("EAVI/1000/25")
            == "Congratulations! Your Admission to EAVI - EAVI/1000/25"
        )

    def test_filename(self):
        assert build_admission_filename("Jane Wanjiru") == "Jane Wanjiru-Admission-Letter.pdf"

    @pytest.mark.asyncio
    async def test_send_admission_letter_attaches_pdf(self, mock_resend):
        message_id = await send_admission_letter(
            to_email="jane@example.com",
            full_name="Jane Wanjiru",
            course="Diploma in Information Technology",
            admission_number="EAVI/1000/25",
            pdf_bytes=b"%PDF-letter",
        )

        assert message_id == "msg-123"
        params = mock_resend.Emails.send.call_args[0][0]
        assert params["subject"] == "Congratulations! Your Admission to EAVI - EAVI/1000/25"
        assert "Jane Wanjiru" in params["html"]
        assert "EAVI/1000/25" in params["html"]
        assert params["attachments"][0]["filename"] == "Jane Wanjiru-Admission-Letter.pdf"
        assert params["attachments"][0]["content"] == list(b"%PDF-letter")

    @pytest.mark.asyncio
    async def test_send_application_confirmation_has_no_attachment(self, mock_resend):
        await send_application_confirmation(
            to_email="jane@example.com",
            full_name="Jane Wanjiru",
            course="Diploma in Information Technology",
            submitted_at=datetime(2025, 8, 4, 9, 30, tzinfo=UTC),
        )

        params = mock_resend.Emails.send.call_args[0][0]
        assert params["subject"].startswith("Application Received")
        assert "attachments" not in params
