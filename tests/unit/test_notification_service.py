from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from techdeputies.db import models
from techdeputies.db.repositories import calendar as calendar_repo
from techdeputies.db.repositories import gift_cards as gift_card_repo
from techdeputies.services import notification_service
from techdeputies.services.email_queue import EmailStatus, EnhancedEmailService, QueueManager
from techdeputies.services.notification_service import NotificationService, default_transport
from techdeputies.services.transactional_email_service import TransactionalEmailService


@pytest.fixture
def notifications(db_session, mail_transport):
    return NotificationService(db_session, email_service=mail_transport)


def _sent(mail_transport):
    return mail_transport.send_email.await_args.kwargs


def test_welcome_email_contains_verify_link(notifications, mail_transport, regular_user, monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://portal.example.com/")
    result = notifications.notify_welcome(regular_user, "tok-abc")
    assert result["success"] is True
    assert result["template"] == "welcome"
    sent = _sent(mail_transport)
    assert sent["to_email"] == "customer@example.com"
    assert "https://portal.example.com/verify-email?token=tok-abc" in sent["text_content"]
    assert "Casey Customer" in sent["html_content"]


def test_booking_confirmation_attaches_invite(db_session, notifications, mail_transport, regular_user):
    event = calendar_repo.create_event(
        db_session, title="Phone Setup",
        start_time=datetime(2026, 2, 2, 10, 0, tzinfo=timezone.utc),
        end_time=datetime(2026, 2, 2, 11, 0, tzinfo=timezone.utc),
    )
    booking = calendar_repo.create_booking(db_session, user_id=regular_user.id, event=event)
    result = notifications.notify_booking_confirmed(regular_user, booking, event)
    assert result["subject"] == "Confirmed: Phone Setup - The Tech Deputies"
    sent = _sent(mail_transport)
    assert "Monday, February 2, 2026" in sent["text_content"]
    assert "10:00 AM - 11:00 AM" in sent["text_content"]
    (attachment,) = sent["attachments"]
    assert attachment.filename == "invite.ics"
    assert f"UID:booking-{booking.id}@thetechdeputies.com" in attachment.content

    notifications.notify_booking_cancelled(regular_user, booking, event)
    (cancel,) = _sent(mail_transport)["attachments"]
    assert "METHOD:CANCEL" in cancel.content


def test_gift_card_requires_recipient(db_session, notifications, mail_transport):
    card = gift_card_repo.create_gift_card(db_session, amount_cents=5000, purchaser_email="buyer@example.com")
    assert notifications.notify_gift_card(card) == {"success": False, "error": "No recipient email"}
    mail_transport.send_email.assert_not_called()

    gift = gift_card_repo.create_gift_card(
        db_session, amount_cents=5000, purchaser_email="buyer@example.com",
        purchaser_name="Bea", recipient_email="friend@example.com", message="Enjoy!",
    )
    notifications.notify_gift_card(gift)
    text = _sent(mail_transport)["text_content"]
    assert "$50.00" in text
    assert gift.code[:4] + "-" in text


def test_transport_failures_do_not_raise(notifications, mail_transport, regular_user):
    mail_transport.send_email = AsyncMock(side_effect=RuntimeError("down"))
    result = notifications.notify_temporary_password(regular_user, "Temp1234pass")
    assert result == {"success": False, "error": "down"}


def test_render_errors_are_returned(notifications, mail_transport, regular_user):
    result = notifications.notify_subscription_confirmed(regular_user, "", [])
    assert result["success"] is False
    assert "plan_name" in result["error"]
    mail_transport.send_email.assert_not_called()


def test_is_configured_reflects_transport(db_session):
    transport = MagicMock()
    transport.is_configured.return_value = False
    assert NotificationService(db_session, email_service=transport).is_configured is False


def test_default_transport_selection(db_session, monkeypatch):
    monkeypatch.delenv("EMAIL_TRANSPORT", raising=False)
    assert isinstance(default_transport(db_session), TransactionalEmailService)
    monkeypatch.setenv("EMAIL_TRANSPORT", "smtp")
    from techdeputies.services.email_service import EmailService
    assert isinstance(default_transport(db_session), EmailService)


def test_admin_notification_goes_to_target(db_session, notifications, mail_transport, admin_user, regular_user):
    result = notifications.notify_admin_action(admin_user, "Password Reset", regular_user, {"reason": "locked out"})
    assert result["subject"] == "Admin Action: Password Reset - The Tech Deputies"
    assert _sent(mail_transport)["to_email"] == regular_user.email
    assert db_session.query(models.User).count() == 2


@pytest.mark.asyncio
async def test_queue_mode_defers_send_until_processed(db_session, mail_transport, regular_user):
    queue = EnhancedEmailService(QueueManager(transport=mail_transport))
    notifications = NotificationService(db_session, email_service=mail_transport, queue=queue)
    event = calendar_repo.create_event(
        db_session, title="Phone Setup",
        start_time=datetime(2026, 2, 2, 10, 0, tzinfo=timezone.utc),
        end_time=datetime(2026, 2, 2, 11, 0, tzinfo=timezone.utc),
    )
    booking = calendar_repo.create_booking(db_session, user_id=regular_user.id, event=event)

    result = notifications.notify_booking_confirmed(regular_user, booking, event)
    assert result["success"] is True
    assert result["queued"] is True
    assert queue.get_delivery_status(result["job_id"]) == EmailStatus.QUEUED
    mail_transport.send_email.assert_not_awaited()

    assert await queue.process_queue() == 1
    sent = _sent(mail_transport)
    assert sent["subject"] == "Confirmed: Phone Setup - The Tech Deputies"
    (attachment,) = sent["attachments"]
    assert attachment.filename == "invite.ics"
    assert queue.get_delivery_status(result["job_id"]) == EmailStatus.SENT


def test_queue_mode_reports_suppressed_recipient(db_session, mail_transport, regular_user):
    queue = EnhancedEmailService(QueueManager(transport=mail_transport))
    queue.suppressions.add(regular_user.email, "complaint")
    notifications = NotificationService(db_session, email_service=mail_transport, queue=queue)
    result = notifications.notify_temporary_password(regular_user, "Temp1234pass")
    assert result["success"] is False
    assert result["queued"] is False
    assert "suppressed" in result["error"]


def test_delivery_mode_selects_queue(db_session, monkeypatch):
    queue = EnhancedEmailService(QueueManager(transport=None))
    monkeypatch.setattr(notification_service, "get_enhanced_email_service", lambda: queue)
    monkeypatch.setenv("EMAIL_DELIVERY", "queue")
    assert notification_service.get_notification_service(db_session).queue is queue
    monkeypatch.setenv("EMAIL_DELIVERY", "direct")
    assert notification_service.get_notification_service(db_session).queue is None
