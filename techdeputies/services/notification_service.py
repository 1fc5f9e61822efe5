"""
Notification service: renders and dispatches the site's transactional emails.

Each ``notify_*`` method renders a template through the TemplateEngine, sends
it over the configured transport and returns the transport's result dict
(``success``/``message_id``/``error``). Failures never raise into the caller;
a request that triggers an email succeeds even when the email does not.

With ``EMAIL_DELIVERY=queue`` rendered messages go to the in-process email
queue instead and are sent when the queue is processed.
"""

import asyncio
import logging
import os
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from techdeputies.catalog.calendar import format_calendar_date, format_slot_range
from techdeputies.catalog.courses import format_price
from techdeputies.config import app_base_url, email_delivery_mode
from techdeputies.db import models
from techdeputies.db.models.base import as_utc
from techdeputies.services import calendar_invites
from techdeputies.services.email_queue import EmailStatus, EnhancedEmailService, get_enhanced_email_service
from techdeputies.services.template_engine import TemplateEngine, TemplateError, get_template_engine
from techdeputies.services.transactional_email_service import EmailAttachment, TransactionalEmailService
from techdeputies.utils.gift_codes import format_code

logger = logging.getLogger(__name__)

# Template name constants (match template file names)
TEMPLATE_WELCOME = 'welcome'
TEMPLATE_PASSWORD_RESET = 'password-reset'
TEMPLATE_ADMIN_NOTIFICATION = 'admin-notification'
TEMPLATE_COURSE_PURCHASE = 'course-purchase'
TEMPLATE_GIFT_CARD = 'gift-card'
TEMPLATE_BOOKING_CONFIRMATION = 'booking-confirmation'
TEMPLATE_BOOKING_CANCELLATION = 'booking-cancellation'
TEMPLATE_TEMPORARY_PASSWORD = 'temporary-password'
TEMPLATE_SUBSCRIPTION_CONFIRMED = 'subscription-confirmed'
TEMPLATE_SUBSCRIPTION_CANCELLED = 'subscription-cancelled'


def _display_name(user: models.User) -> str:
    return user.name or user.email.split('@')[0]


def default_transport(db: Optional[Session]):
    """Mailgun unless ``EMAIL_TRANSPORT=smtp``."""
    if os.getenv('EMAIL_TRANSPORT', 'mailgun').lower() == 'smtp':
        from techdeputies.services.email_service import get_email_service
        return get_email_service()
    return TransactionalEmailService.for_db(db)


class NotificationService:
    """Service class for handling all email notifications."""

    def __init__(
        self,
        db: Optional[Session] = None,
        email_service: Optional[Any] = None,
        template_engine: Optional[TemplateEngine] = None,
        queue: Optional[EnhancedEmailService] = None,
    ):
        self.db = db
        self.queue = queue
        self.email_service = email_service if email_service is not None else default_transport(db)
        self.templates = template_engine or get_template_engine()

    @property
    def is_configured(self) -> bool:
        checker = getattr(self.email_service, 'is_configured', None)
        return bool(checker()) if callable(checker) else self.email_service is not None

    def send_template(
        self,
        to_email: str,
        template_id: str,
        context: Dict[str, Any],
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> Dict[str, Any]:
        try:
            rendered = self.templates.render(template_id, context)
        except TemplateError as e:
            logger.error("email_render_failed template=%s error=%s", template_id, e)
            return {'success': False, 'error': str(e)}

        if self.queue is not None:
            return self._enqueue(to_email, template_id, rendered, attachments)

        kwargs: Dict[str, Any] = {}
        if attachments:
            kwargs['attachments'] = attachments
        try:
            result = asyncio.run(self.email_service.send_email(
                to_email=to_email,
                subject=rendered.subject,
                html_content=rendered.html,
                text_content=rendered.text,
                **kwargs,
            ))
        except Exception as e:
            logger.exception("email_dispatch_failed template=%s to=%s", template_id, to_email)
            return {'success': False, 'error': str(e)}
        result = dict(result or {})
        result.setdefault('success', False)
        result['template'] = template_id
        result['subject'] = rendered.subject
        return result

    def _enqueue(self, to_email: str, template_id: str, rendered, attachments) -> Dict[str, Any]:
        job = self.queue.send_email(
            to_email,
            rendered.subject,
            rendered.html,
            rendered.text,
            metadata={'template': template_id},
            attachments=attachments,
        )
        queued = job.status == EmailStatus.QUEUED
        result: Dict[str, Any] = {'success': queued, 'queued': queued, 'job_id': job.id}
        if not queued:
            result['error'] = job.last_error
        result['template'] = template_id
        result['subject'] = rendered.subject
        return result

    # === Account ===

    def notify_welcome(self, user: models.User, verify_token: str) -> Dict[str, Any]:
        return self.send_template(user.email, TEMPLATE_WELCOME, {
            'user_name': _display_name(user),
            'verify_url': f"{app_base_url()}/verify-email?token={verify_token}",
        })

    def notify_password_reset(
        self,
        user: models.User,
        reset_token: str,
        expires_in: str = '1 hour',
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self.send_template(user.email, TEMPLATE_PASSWORD_RESET, {
            'user_name': _display_name(user),
            'reset_url': f"{app_base_url()}/reset-password?token={reset_token}",
            'expires_in': expires_in,
            'reason': reason,
        })

    def notify_temporary_password(self, user: models.User, temporary_password: str) -> Dict[str, Any]:
        return self.send_template(user.email, TEMPLATE_TEMPORARY_PASSWORD, {
            'user_name': _display_name(user),
            'temporary_password': temporary_password,
            'login_url': f"{app_base_url()}/login",
        })

    def notify_admin_action(
        self,
        admin: models.User,
        action: str,
        target: models.User,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Tell the affected user that an administrator acted on their account."""
        return self.send_template(target.email, TEMPLATE_ADMIN_NOTIFICATION, {
            'admin_name': _display_name(admin),
            'action': action,
            'target_name': _display_name(target),
            'target_email': target.email,
            'timestamp': datetime.now(UTC).strftime('%Y-%m-%d %H:%M UTC'),
            'details': details or {},
        })

    # === Commerce ===

    def notify_course_purchase(
        self,
        user: models.User,
        course_title: str,
        course_slug: str,
        amount_cents: int,
        gift_card_amount_cents: int = 0,
    ) -> Dict[str, Any]:
        return self.send_template(user.email, TEMPLATE_COURSE_PURCHASE, {
            'user_name': _display_name(user),
            'course_title': course_title,
            'amount': format_price(amount_cents),
            'gift_card_amount': format_price(gift_card_amount_cents) if gift_card_amount_cents else None,
            'course_url': f"{app_base_url()}/dashboard/courses/{course_slug}",
        })

    def notify_gift_card(self, card: models.GiftCard) -> Dict[str, Any]:
        if not card.recipient_email:
            return {'success': False, 'error': 'No recipient email'}
        return self.send_template(card.recipient_email, TEMPLATE_GIFT_CARD, {
            'recipient_name': card.recipient_name or card.recipient_email.split('@')[0],
            'purchaser_name': card.purchaser_name or card.purchaser_email,
            'amount': format_price(card.original_amount),
            'code': format_code(card.code),
            'message': card.message,
            'redeem_url': f"{app_base_url()}/gift-cards/redeem",
        })

    def notify_subscription_confirmed(self, user: models.User, plan_name: str, features: List[str]) -> Dict[str, Any]:
        return self.send_template(user.email, TEMPLATE_SUBSCRIPTION_CONFIRMED, {
            'plan_name': plan_name,
            'features': list(features),
            'dashboard_url': f"{app_base_url()}/dashboard",
        })

    def notify_subscription_cancelled(self, user: models.User, plan_name: str) -> Dict[str, Any]:
        return self.send_template(user.email, TEMPLATE_SUBSCRIPTION_CANCELLED, {
            'plan_name': plan_name,
            'plans_url': f"{app_base_url()}/plans",
        })

    # === Bookings ===

    def _booking_context(self, user: models.User, event: models.CalendarEvent) -> Dict[str, Any]:
        start = as_utc(event.start_time)
        end = as_utc(event.end_time)
        return {
            'user_name': _display_name(user),
            'event_title': event.title,
            'event_date': format_calendar_date(start),
            'event_time': format_slot_range(start, end),
        }

    def notify_booking_confirmed(
        self,
        user: models.User,
        booking: models.Booking,
        event: models.CalendarEvent,
    ) -> Dict[str, Any]:
        ics = calendar_invites.build_invite(
            booking_id=booking.id,
            title=event.title,
            start=event.start_time,
            end=event.end_time,
            description=event.description,
        )
        return self.send_template(
            user.email,
            TEMPLATE_BOOKING_CONFIRMATION,
            self._booking_context(user, event),
            attachments=[calendar_invites.invite_attachment(ics)],
        )

    def notify_booking_cancelled(
        self,
        user: models.User,
        booking: models.Booking,
        event: models.CalendarEvent,
    ) -> Dict[str, Any]:
        ics = calendar_invites.build_invite(
            booking_id=booking.id,
            title=event.title,
            start=event.start_time,
            end=event.end_time,
            description=event.description,
            cancel=True,
        )
        context = self._booking_context(user, event)
        context['booking_url'] = f"{app_base_url()}/booking"
        return self.send_template(
            user.email,
            TEMPLATE_BOOKING_CANCELLATION,
            context,
            attachments=[calendar_invites.invite_attachment(ics, cancel=True)],
        )


def get_notification_service(db: Optional[Session] = None) -> NotificationService:
    if email_delivery_mode() == "queue":
        return NotificationService(db, queue=get_enhanced_email_service())
    return NotificationService(db)
