import os
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from techdeputies.services.email_service import EmailService, EmailServiceConfig
from techdeputies.services.transactional_email_service import EmailAttachment


@contextmanager
def _env(**env):
    old = {k: os.environ.get(k) for k in env}
    try:
        for k, v in env.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v
        yield
    finally:
        for k, v in old.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


SMTP_ENV = dict(SMTP_HOST="smtp.example.com", SMTP_PORT="587", SMTP_FROM_EMAIL="noreply@example.com",
                SMTP_USE_TLS=None, SMTP_START_TLS=None, REPLY_TO_EMAIL=None)


def test_config_validate_and_is_configured():
    with _env(**SMTP_ENV):
        cfg = EmailServiceConfig()
        assert cfg.is_configured() is True
        assert cfg.validate() == []

    with _env(SMTP_HOST="", SMTP_PORT="-1", SMTP_USE_TLS="true", SMTP_START_TLS="true"):
        errs = EmailServiceConfig().validate()
        assert "SMTP_HOST is required" in errs
        assert "SMTP_PORT must be a positive integer" in errs
        assert "Cannot use both implicit TLS and STARTTLS simultaneously" in errs


@pytest.mark.asyncio
async def test_send_email_not_configured():
    with _env(SMTP_HOST=""):
        out = await EmailService().send_email("user@example.com", "Subject", "<b>Hi</b>")
    assert out["success"] is False
    assert "not configured" in out["error"]


@pytest.mark.asyncio
async def test_send_email_success_with_mocked_smtp():
    with _env(**SMTP_ENV):
        svc = EmailService()

        class _SMTPMock(MagicMock):
            async def __aenter__(self2):
                return self2

            async def __aexit__(self2, exc_type, exc, tb):
                return False

            async def send_message(self2, message):
                return {"status": "250 OK"}

        with patch("aiosmtplib.SMTP", _SMTPMock):
            out = await svc.send_email("user@example.com", "Subject", "<b>Hi</b>", text_content="Hi")
    assert out["success"] is True
    assert out["provider"] == "smtp"
    assert out["message_id"].endswith("@example.com>")


def test_build_message_with_ics_attachment():
    with _env(**SMTP_ENV):
        svc = EmailService()
    attachment = EmailAttachment("invite.ics", "BEGIN:VCALENDAR\r\n", "text/calendar; method=REQUEST; charset=UTF-8")
    message = svc.build_message("user@example.com", "Booked", "<p>x</p>", "x", attachments=[attachment])
    assert message.get_content_type() == "multipart/mixed"
    parts = message.get_payload()
    assert parts[0].get_content_type() == "multipart/alternative"
    invite = parts[1]
    assert invite.get_content_type() == "text/calendar"
    assert invite.get_param("method") == "REQUEST"
    assert invite.get_filename() == "invite.ics"
    assert message["From"] == "The Tech Deputies <noreply@example.com>"


def test_build_message_without_attachments_is_alternative():
    with _env(**SMTP_ENV):
        svc = EmailService()
    message = svc.build_message("user@example.com", "Hi", "<p>x</p>", reply_to="help@example.com")
    assert message.get_content_type() == "multipart/alternative"
    assert message["Reply-To"] == "help@example.com"
