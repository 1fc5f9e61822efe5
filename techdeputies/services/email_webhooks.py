"""
Mailgun webhook processing.

Verifies the webhook signature (HMAC-SHA256 of ``timestamp + token`` keyed by
the signing secret), then maps delivery events onto queued email jobs and the
suppression list.
"""

import hashlib
import hmac
import logging
import os
import time
from datetime import datetime, timedelta, UTC
from typing import Any, Callable, Dict, List, Optional

from techdeputies.services.email_queue import EmailStatus, EnhancedEmailService, SuppressionList

logger = logging.getLogger(__name__)

MAX_TIMESTAMP_AGE_SECONDS = 15 * 60
RETRY_DELAY = timedelta(minutes=5)
TEMPORARY_SEVERITIES = ('temporary', 'retry')


class WebhookError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def compute_signature(signing_secret: str, timestamp: str, token: str) -> str:
    return hmac.new(
        signing_secret.encode('utf-8'),
        f"{timestamp}{token}".encode('utf-8'),
        hashlib.sha256,
    ).hexdigest()


def _parse_ips(raw: str) -> List[str]:
    return [ip.strip() for ip in raw.split(',') if ip.strip()]


def _event_time(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(float(value), UTC)
    except (TypeError, ValueError):
        return datetime.now(UTC)


class MailgunWebhookHandler:
    """Validates and dispatches Mailgun event webhooks."""

    def __init__(
        self,
        email_service: EnhancedEmailService,
        signing_secret: Optional[str] = None,
        valid_ips: Optional[List[str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.email_service = email_service
        self.signing_secret = (
            signing_secret if signing_secret is not None
            else os.getenv('MAILGUN_WEBHOOK_SIGNING_SECRET', '')
        )
        self.valid_ips = (
            valid_ips if valid_ips is not None
            else _parse_ips(os.getenv('MAILGUN_WEBHOOK_VALID_IPS', ''))
        )
        self.clock = clock
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            'delivered': self._handle_delivered,
            'opened': self._handle_opened,
            'clicked': self._handle_clicked,
            'bounced': self._handle_bounced,
            'complained': self._handle_complained,
            'failed': self._handle_failed,
            'dropped': self._handle_dropped,
        }

    @property
    def suppressions(self) -> SuppressionList:
        return self.email_service.suppressions

    # Validation

    def verify_signature(self, timestamp: str, token: str, signature: str) -> bool:
        if not (self.signing_secret and timestamp and token and signature):
            return False
        expected = compute_signature(self.signing_secret, str(timestamp), str(token))
        return hmac.compare_digest(expected, str(signature).lower())

    def validate_request(self, client_ip: str, signature_block: Dict[str, Any]) -> None:
        if not self.signing_secret:
            raise WebhookError(401, 'Mailgun webhook signing not configured')
        if self.valid_ips and client_ip not in self.valid_ips:
            raise WebhookError(401, f'IP {client_ip} not in whitelist')

        timestamp = signature_block.get('timestamp')
        token = signature_block.get('token')
        signature = signature_block.get('signature')
        if not signature:
            raise WebhookError(401, 'Missing webhook signature')
        if not timestamp:
            raise WebhookError(401, 'Missing webhook timestamp')
        if not token:
            raise WebhookError(401, 'Missing webhook token')
        try:
            age = abs(self.clock() - float(timestamp))
        except (TypeError, ValueError):
            raise WebhookError(401, 'Invalid webhook timestamp')
        if age > MAX_TIMESTAMP_AGE_SECONDS:
            raise WebhookError(401, 'Webhook timestamp too old')
        if not self.verify_signature(str(timestamp), str(token), str(signature)):
            raise WebhookError(401, 'Invalid webhook signature')

    # Dispatch

    def handle(self, payload: Dict[str, Any], client_ip: str, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        raw_signature = payload.get('signature') or {}
        if not isinstance(raw_signature, dict):
            raise WebhookError(400, 'Invalid signature block')
        if not isinstance(payload.get('event-data') or {}, dict):
            raise WebhookError(400, 'Invalid event data')
        signature_block = dict(raw_signature)
        if headers:
            signature_block.setdefault('timestamp', headers.get('x-mailgun-timestamp'))
            signature_block.setdefault('token', headers.get('x-mailgun-token'))
            signature_block.setdefault('signature', headers.get('x-mailgun-signature'))
        self.validate_request(client_ip, signature_block)

        event_data = payload.get('event-data') or {}
        event = str(event_data.get('event') or 'unknown').lower()
        logger.info(
            "mailgun_webhook event=%s message_id=%s recipient=%s",
            event, self._message_id(event_data), event_data.get('recipient'),
        )
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning("Unknown webhook event %s", event)
            outcome = {'action': 'ignored'}
        else:
            outcome = handler(event_data)
        return {'success': True, 'message': 'Webhook processed successfully', 'event': event, **outcome}

    @staticmethod
    def _message_id(event_data: Dict[str, Any]) -> Optional[str]:
        headers = (event_data.get('message') or {}).get('headers') or {}
        return headers.get('message-id') or event_data.get('id')

    def _job_for(self, event_data: Dict[str, Any]):
        return self.email_service.queue.find_by_message_id(self._message_id(event_data) or '')

    def _mark(self, event_data: Dict[str, Any], status: EmailStatus, **fields: Any) -> Dict[str, Any]:
        job = self._job_for(event_data)
        if job is None:
            return {'action': 'untracked'}
        self.email_service.queue.update_status(job.id, status, **fields)
        return {'action': status.value.lower(), 'jobId': job.id}

    def _handle_delivered(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._mark(event_data, EmailStatus.DELIVERED, delivered_at=_event_time(event_data.get('timestamp')))

    def _handle_opened(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._mark(event_data, EmailStatus.OPENED, opened_at=_event_time(event_data.get('timestamp')))

    def _handle_clicked(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        outcome = self._mark(event_data, EmailStatus.CLICKED, clicked_at=_event_time(event_data.get('timestamp')))
        if event_data.get('url'):
            outcome['url'] = event_data['url']
        return outcome

    def _handle_bounced(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        reason = event_data.get('reason') or 'Unknown'
        logger.warning("Email bounced recipient=%s reason=%s", event_data.get('recipient'), reason)
        outcome = self._mark(
            event_data,
            EmailStatus.BOUNCED,
            bounced_at=_event_time(event_data.get('timestamp')),
            bounce_reason=reason,
        )
        if 'jobId' in outcome:
            outcome['retryScheduled'] = self.email_service.retry_email(outcome['jobId'], delay=RETRY_DELAY)
        return outcome

    def _handle_complained(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        complaint = (event_data.get('complaint') or {}).get('reason') or 'Unknown'
        outcome = self._mark(
            event_data,
            EmailStatus.COMPLAINED,
            complained_at=_event_time(event_data.get('timestamp')),
            complaint_type=complaint,
        )
        recipient = event_data.get('recipient')
        if recipient:
            self.suppressions.add(recipient, SuppressionList.COMPLAINT, 'Email was marked as spam by recipient')
            outcome['suppressed'] = True
        return outcome

    def _handle_failed(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        delivery = event_data.get('delivery-status') or {}
        severity = str(event_data.get('severity') or delivery.get('status') or 'unknown').lower()
        error = delivery.get('message') or delivery.get('description') or event_data.get('reason') or 'Unknown'
        logger.error("Email delivery failed recipient=%s severity=%s error=%s",
                     event_data.get('recipient'), severity, error)
        outcome = self._mark(event_data, EmailStatus.FAILED, last_error=error)
        if severity in TEMPORARY_SEVERITIES:
            if 'jobId' in outcome:
                outcome['retryScheduled'] = self.email_service.retry_email(outcome['jobId'], delay=RETRY_DELAY)
        else:
            recipient = event_data.get('recipient')
            if recipient:
                self.suppressions.add(recipient, SuppressionList.BOUNCE, error)
                outcome['suppressed'] = True
        return outcome

    def _handle_dropped(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
        logger.warning("Email dropped message_id=%s recipient=%s",
                       self._message_id(event_data), event_data.get('recipient'))
        return self._mark(event_data, EmailStatus.FAILED, last_error=event_data.get('reason') or 'Dropped')
