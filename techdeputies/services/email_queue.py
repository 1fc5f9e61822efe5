"""
In-memory email queue with priority ordering and delivery tracking.

Jobs live only in process memory; a restart drops anything not yet sent.
``QueueManager`` owns job state and dispatch, ``EnhancedEmailService`` is the
facade the rest of the app uses to enqueue mail and read analytics.
"""

import asyncio
import itertools
import logging
import re
import uuid
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from techdeputies.services.template_engine import TemplateEngine, TemplateError, get_template_engine

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_SUBJECT = 'Email from The Tech Deputies'

TEMPLATE_SUBJECTS = {
    'password-reset': 'Password Reset - The Tech Deputies',
    'admin-notification': 'Admin Action Notification - The Tech Deputies',
    'welcome': 'Welcome to The Tech Deputies',
    'course-purchase': 'Course Purchase Confirmation - The Tech Deputies',
    'gift-card': 'Gift Card Confirmation - The Tech Deputies',
}


class EmailStatus(str, Enum):
    QUEUED = 'QUEUED'
    SENDING = 'SENDING'
    SENT = 'SENT'
    DELIVERED = 'DELIVERED'
    OPENED = 'OPENED'
    CLICKED = 'CLICKED'
    BOUNCED = 'BOUNCED'
    COMPLAINED = 'COMPLAINED'
    FAILED = 'FAILED'
    CANCELLED = 'CANCELLED'


class Priority(str, Enum):
    LOW = 'LOW'
    NORMAL = 'NORMAL'
    HIGH = 'HIGH'
    CRITICAL = 'CRITICAL'


PRIORITY_ORDER = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.NORMAL: 2,
    Priority.LOW: 3,
}

# Timestamp field stamped when a job enters the given status
_STATUS_TIMESTAMPS = {
    EmailStatus.SENT: 'sent_at',
    EmailStatus.DELIVERED: 'delivered_at',
    EmailStatus.OPENED: 'opened_at',
    EmailStatus.CLICKED: 'clicked_at',
    EmailStatus.BOUNCED: 'bounced_at',
    EmailStatus.COMPLAINED: 'complained_at',
}


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class EmailJob:
    recipient_email: str
    subject: str
    template_type: str = 'custom'
    recipient_name: Optional[str] = None
    html: Optional[str] = None
    text: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    attachments: List[Any] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    message_id: Optional[str] = None
    status: EmailStatus = EmailStatus.QUEUED
    priority: Priority = Priority.NORMAL
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    bounced_at: Optional[datetime] = None
    complained_at: Optional[datetime] = None
    bounce_reason: Optional[str] = None
    complaint_type: Optional[str] = None
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    last_error: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            'id': self.id,
            'messageId': self.message_id,
            'templateType': self.template_type,
            'recipientEmail': self.recipient_email,
            'recipientName': self.recipient_name,
            'subject': self.subject,
            'attachmentCount': len(self.attachments),
            'status': self.status.value,
            'priority': self.priority.value,
            'scheduledAt': iso(self.scheduled_at),
            'sentAt': iso(self.sent_at),
            'deliveredAt': iso(self.delivered_at),
            'openedAt': iso(self.opened_at),
            'clickedAt': iso(self.clicked_at),
            'bouncedAt': iso(self.bounced_at),
            'complainedAt': iso(self.complained_at),
            'bounceReason': self.bounce_reason,
            'complaintType': self.complaint_type,
            'retryCount': self.retry_count,
            'maxRetries': self.max_retries,
            'lastError': self.last_error,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


class QueueManager:
    """Priority queue of email jobs, FIFO within a priority."""

    def __init__(
        self,
        transport: Optional[Any] = None,
        template_engine: Optional[TemplateEngine] = None,
        clock: Callable[[], datetime] = _now,
    ):
        self.transport = transport
        self.templates = template_engine or get_template_engine()
        self.clock = clock
        self.jobs: Dict[str, EmailJob] = {}
        self._processing: set = set()
        # Guards process_queue across threadpool workers, each running its own event loop
        self._process_lock = threading.Lock()
        self._sequence = itertools.count(1)

    def enqueue(
        self,
        job: EmailJob,
        *,
        priority: Optional[Priority] = None,
        max_retries: Optional[int] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> EmailJob:
        if priority is not None:
            job.priority = Priority(priority)
        if max_retries is not None:
            job.max_retries = max_retries
        if scheduled_at is not None:
            job.scheduled_at = scheduled_at
        job.status = EmailStatus.QUEUED
        job.retry_count = 0
        job.sequence = next(self._sequence)
        job.created_at = job.updated_at = self.clock()
        self.jobs[job.id] = job
        logger.info(
            "email_job_enqueued id=%s template=%s recipient=%s priority=%s",
            job.id, job.template_type, job.recipient_email, job.priority.value,
        )
        return job

    def dequeue(self) -> Optional[EmailJob]:
        """Claim the next due job and mark it SENDING."""
        now = self.clock()
        ready = [
            job for job in self.jobs.values()
            if job.status == EmailStatus.QUEUED
            and job.id not in self._processing
            and (job.scheduled_at is None or job.scheduled_at <= now)
        ]
        if not ready:
            return None
        job = min(ready, key=lambda j: (PRIORITY_ORDER[j.priority], j.sequence))
        self._processing.add(job.id)
        self.update_status(job.id, EmailStatus.SENDING)
        logger.info("email_job_dequeued id=%s priority=%s", job.id, job.priority.value)
        return job

    async def process_queue(self) -> int:
        """Send every due job; returns how many jobs were attempted."""
        if not self._process_lock.acquire(blocking=False):
            logger.warning("Queue processing already in progress")
            return 0
        attempted = 0
        try:
            while True:
                job = self.dequeue()
                if job is None:
                    break
                attempted += 1
                await self._process_job(job)
        finally:
            self._process_lock.release()
        return attempted

    @property
    def is_processing(self) -> bool:
        return self._process_lock.locked()

    async def _process_job(self, job: EmailJob) -> bool:
        try:
            result = await self._send(job)
        except Exception as e:
            logger.exception("email_job_error id=%s", job.id)
            result = {'success': False, 'error': str(e)}
        finally:
            self._processing.discard(job.id)

        if job.status == EmailStatus.CANCELLED:
            return False
        if result.get('success'):
            job.message_id = result.get('message_id') or job.message_id
            job.last_error = None
            self.update_status(job.id, EmailStatus.SENT)
            logger.info("email_job_sent id=%s message_id=%s", job.id, job.message_id)
            return True

        job.last_error = result.get('error') or 'Unknown error'
        job.retry_count += 1
        if job.retry_count < job.max_retries:
            self.update_status(job.id, EmailStatus.QUEUED)
            logger.warning(
                "email_job_retry id=%s attempt=%s/%s error=%s",
                job.id, job.retry_count, job.max_retries, job.last_error,
            )
        else:
            self.update_status(job.id, EmailStatus.FAILED)
            logger.error("email_job_failed id=%s error=%s", job.id, job.last_error)
        return False

    async def _send(self, job: EmailJob) -> Dict[str, Any]:
        if self.transport is None:
            return {'success': False, 'error': 'Email service not configured'}
        html, text = job.html, job.text
        if html is None:
            try:
                rendered = self.templates.render(job.template_type, job.metadata)
            except TemplateError as e:
                return {'success': False, 'error': str(e)}
            html, text = rendered.html, rendered.text
        kwargs: Dict[str, Any] = {}
        if job.attachments:
            kwargs['attachments'] = list(job.attachments)
        return await self.transport.send_email(
            to_email=job.recipient_email,
            subject=job.subject,
            html_content=html,
            text_content=text,
            **kwargs,
        )

    def get_job(self, job_id: str) -> Optional[EmailJob]:
        return self.jobs.get(job_id)

    def find_by_message_id(self, message_id: str) -> Optional[EmailJob]:
        if not message_id:
            return None
        stripped = message_id.strip('<>')
        for job in self.jobs.values():
            if job.message_id and job.message_id.strip('<>') == stripped:
                return job
        return None

    def update_status(self, job_id: str, status: EmailStatus, **fields: Any) -> Optional[EmailJob]:
        job = self.jobs.get(job_id)
        if job is None:
            return None
        now = self.clock()
        job.status = EmailStatus(status)
        stamp = _STATUS_TIMESTAMPS.get(job.status)
        if stamp and getattr(job, stamp) is None:
            setattr(job, stamp, now)
        for key, value in fields.items():
            setattr(job, key, value)
        job.updated_at = now
        return job

    def cancel(self, job_id: str) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status not in (EmailStatus.QUEUED, EmailStatus.SENDING):
            return False
        self.update_status(job_id, EmailStatus.CANCELLED)
        self._processing.discard(job_id)
        logger.info("email_job_cancelled id=%s", job_id)
        return True

    def retry(self, job_id: str, delay: Optional[timedelta] = None) -> bool:
        job = self.jobs.get(job_id)
        if job is None or job.status not in (EmailStatus.FAILED, EmailStatus.BOUNCED):
            return False
        if job.retry_count >= job.max_retries:
            return False
        job.retry_count += 1
        job.scheduled_at = self.clock() + delay if delay else None
        self.update_status(job_id, EmailStatus.QUEUED)
        logger.info("email_job_retry_scheduled id=%s retry=%s/%s", job_id, job.retry_count, job.max_retries)
        return True

    def get_stats(self) -> Dict[str, Any]:
        jobs = list(self.jobs.values())

        def count(status: EmailStatus) -> int:
            return sum(1 for j in jobs if j.status == status)

        return {
            'total': len(jobs),
            'queued': count(EmailStatus.QUEUED),
            'sending': count(EmailStatus.SENDING),
            'sent': count(EmailStatus.SENT),
            'delivered': count(EmailStatus.DELIVERED),
            'opened': count(EmailStatus.OPENED),
            'clicked': count(EmailStatus.CLICKED),
            'bounced': count(EmailStatus.BOUNCED),
            'complained': count(EmailStatus.COMPLAINED),
            'failed': count(EmailStatus.FAILED),
            'cancelled': count(EmailStatus.CANCELLED),
            'averageProcessingTime': self._average_processing_ms(jobs),
        }

    @staticmethod
    def _average_processing_ms(jobs: List[EmailJob]) -> float:
        durations = [
            (j.sent_at - j.created_at).total_seconds() * 1000
            for j in jobs if j.sent_at is not None
        ]
        if not durations:
            return 0
        return round(sum(durations) / len(durations), 2)


@dataclass
class Suppression:
    email: str
    reason: str
    created_at: datetime = field(default_factory=_now)
    detail: Optional[str] = None


class SuppressionList:
    """Addresses that must not be mailed again (hard bounces, complaints)."""

    BOUNCE = 'BOUNCE'
    COMPLAINT = 'COMPLAINT'
    UNSUBSCRIBE = 'UNSUBSCRIBE'

    def __init__(self):
        self._entries: Dict[str, Suppression] = {}

    def add(self, email: str, reason: str, detail: Optional[str] = None) -> Suppression:
        key = email.strip().lower()
        entry = Suppression(email=key, reason=reason, detail=detail)
        self._entries[key] = entry
        logger.info("email_suppressed email=%s reason=%s", key, reason)
        return entry

    def remove(self, email: str) -> bool:
        return self._entries.pop(email.strip().lower(), None) is not None

    def is_suppressed(self, email: str) -> bool:
        return email.strip().lower() in self._entries

    def get(self, email: str) -> Optional[Suppression]:
        return self._entries.get(email.strip().lower())

    def all(self) -> List[Suppression]:
        return list(self._entries.values())


def extract_name_from_email(email: str) -> str:
    """``jane.doe@example.com`` -> ``Jane``; ``john_smith@...`` -> ``John Smith``."""
    local = email.split('@')[0].split('.')[0]
    cleaned = re.sub(r'[^a-zA-Z\s]', ' ', local)
    titled = re.sub(r'\b\w', lambda m: m.group(0).upper(), cleaned)
    return re.sub(r'\s+', ' ', titled).strip()


def generate_subject_from_template(template_name: str, data: Optional[Dict[str, Any]] = None) -> str:
    return TEMPLATE_SUBJECTS.get(template_name, DEFAULT_SUBJECT)


def _rate(part: int, whole: int) -> float:
    return round(part / whole, 4) if whole else 0.0


class EnhancedEmailService:
    """Queue-backed email facade with delivery analytics."""

    def __init__(
        self,
        queue: Optional[QueueManager] = None,
        suppressions: Optional[SuppressionList] = None,
    ):
        self.queue = queue or QueueManager()
        self.suppressions = suppressions or SuppressionList()

    def _enqueue(self, job: EmailJob, **options: Any) -> EmailJob:
        job = self.queue.enqueue(job, **options)
        if self.suppressions.is_suppressed(job.recipient_email):
            entry = self.suppressions.get(job.recipient_email)
            self.queue.update_status(job.id, EmailStatus.CANCELLED, last_error=f"Recipient suppressed ({entry.reason})")
            logger.info("email_job_suppressed id=%s recipient=%s", job.id, job.recipient_email)
        return job

    def send_email(
        self,
        to: str,
        subject: str,
        html: Optional[str] = None,
        text: Optional[str] = None,
        *,
        priority: Priority = Priority.NORMAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        scheduled_at: Optional[datetime] = None,
        metadata: Optional[Dict[str, Any]] = None,
        attachments: Optional[List[Any]] = None,
    ) -> EmailJob:
        """Queue a pre-rendered message."""
        job = EmailJob(
            recipient_email=to,
            recipient_name=extract_name_from_email(to),
            subject=subject,
            html=html if html is not None else (text or ''),
            text=text,
            metadata=dict(metadata or {}),
            attachments=list(attachments or []),
        )
        return self._enqueue(job, priority=priority, max_retries=max_retries, scheduled_at=scheduled_at)

    def send_template(
        self,
        template_name: str,
        data: Dict[str, Any],
        to: str,
        *,
        subject: Optional[str] = None,
        priority: Priority = Priority.NORMAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        scheduled_at: Optional[datetime] = None,
    ) -> EmailJob:
        """Queue a template email; the body is rendered when the job is sent."""
        if subject is None:
            template = self.queue.templates.get_template(template_name)
            if template is not None:
                subject = self.queue.templates.env.from_string(template.subject).render(**data)
            else:
                subject = generate_subject_from_template(template_name, data)
        job = EmailJob(
            recipient_email=to,
            recipient_name=data.get('name') or extract_name_from_email(to),
            subject=subject,
            template_type=template_name,
            metadata=dict(data),
        )
        return self._enqueue(job, priority=priority, max_retries=max_retries, scheduled_at=scheduled_at)

    def schedule_email(self, to: str, subject: str, html: Optional[str], text: Optional[str], send_at: datetime,
                       priority: Priority = Priority.NORMAL) -> EmailJob:
        return self.send_email(
            to, subject, html, text,
            priority=priority,
            scheduled_at=send_at,
            metadata={'scheduledFor': send_at.isoformat()},
        )

    def cancel_email(self, job_id: str) -> bool:
        return self.queue.cancel(job_id)

    def retry_email(self, job_id: str, delay: Optional[timedelta] = None) -> bool:
        return self.queue.retry(job_id, delay=delay)

    def get_delivery_status(self, job_id: str) -> Optional[EmailStatus]:
        job = self.queue.get_job(job_id)
        return job.status if job else None

    async def process_queue(self) -> int:
        return await self.queue.process_queue()

    def get_queue_stats(self) -> Dict[str, Any]:
        return self.queue.get_stats()

    def get_analytics(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
        jobs = [
            j for j in self.queue.jobs.values()
            if (start is None or j.created_at >= start) and (end is None or j.created_at <= end)
        ]
        sent = sum(1 for j in jobs if j.sent_at is not None)
        delivered = sum(1 for j in jobs if j.delivered_at is not None)
        opened = sum(1 for j in jobs if j.opened_at is not None)
        clicked = sum(1 for j in jobs if j.clicked_at is not None)
        bounced = sum(1 for j in jobs if j.bounced_at is not None)
        complained = sum(1 for j in jobs if j.complained_at is not None)
        failed = sum(1 for j in jobs if j.status == EmailStatus.FAILED)
        return {
            'total': len(jobs),
            'sent': sent,
            'delivered': delivered,
            'opened': opened,
            'clicked': clicked,
            'bounced': bounced,
            'complained': complained,
            'failed': failed,
            'deliveryRate': _rate(delivered, sent),
            'openRate': _rate(opened, delivered),
            'clickRate': _rate(clicked, delivered),
            'bounceRate': _rate(bounced, sent),
            'complaintRate': _rate(complained, sent),
        }


_enhanced_email_service: Optional[EnhancedEmailService] = None
_service_lock = threading.Lock()


def get_enhanced_email_service() -> EnhancedEmailService:
    """Process-wide queue; the transport is resolved from the environment."""
    global _enhanced_email_service
    with _service_lock:
        if _enhanced_email_service is None:
            from techdeputies.services.notification_service import default_transport
            _enhanced_email_service = EnhancedEmailService(QueueManager(transport=default_transport(None)))
        return _enhanced_email_service


def run_queue_once() -> int:
    """Blocking helper for sync callers (route handlers run in the threadpool)."""
    return asyncio.run(get_enhanced_email_service().process_queue())
