"""
Email Service

SMTP transport used when ``EMAIL_TRANSPORT=smtp``. Uses aiosmtplib for async
delivery; returns the same result dict shape as the Mailgun sender.
"""

import asyncio
import logging
import os
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional, Dict, Any, List

import aiosmtplib

from techdeputies.config import SITE_NAME
from techdeputies.services.transactional_email_service import EmailAttachment, NOT_CONFIGURED

logger = logging.getLogger(__name__)


class EmailServiceConfig:
    """Configuration for email service from environment variables."""

    def __init__(self):
        self.smtp_host = os.getenv('SMTP_HOST', '')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.smtp_use_tls = os.getenv('SMTP_USE_TLS', 'false').lower() == 'true'
        self.smtp_start_tls = os.getenv('SMTP_START_TLS', 'true').lower() == 'true'
        self.from_email = os.getenv('SMTP_FROM_EMAIL', os.getenv('MAILGUN_FROM_EMAIL', 'noreply@thetechdeputies.com'))
        self.from_name = os.getenv('SMTP_FROM_NAME', SITE_NAME)
        self.reply_to_email = os.getenv('REPLY_TO_EMAIL', '')

    def is_configured(self) -> bool:
        """Check if email service is properly configured."""
        return bool(self.smtp_host and self.smtp_port and self.from_email)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.smtp_host:
            errors.append("SMTP_HOST is required")
        if not self.smtp_port or self.smtp_port <= 0:
            errors.append("SMTP_PORT must be a positive integer")
        if not self.from_email:
            errors.append("SMTP_FROM_EMAIL is required")
        if self.smtp_use_tls and self.smtp_start_tls:
            errors.append("Cannot use both implicit TLS and STARTTLS simultaneously")
        return errors


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self, config: Optional[EmailServiceConfig] = None):
        self.config = config or EmailServiceConfig()

    def is_configured(self) -> bool:
        return self.config.is_configured()

    def build_message(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
    ) -> MIMEMultipart:
        body = MIMEMultipart('alternative')
        if text_content:
            body.attach(MIMEText(text_content, 'plain', 'utf-8'))
        body.attach(MIMEText(html_content, 'html', 'utf-8'))

        if attachments:
            message = MIMEMultipart('mixed')
            message.attach(body)
            for attachment in attachments:
                self._add_attachment(message, attachment)
        else:
            message = body

        message['From'] = f"{self.config.from_name} <{self.config.from_email}>"
        message['To'] = to_email
        message['Subject'] = subject
        message['Message-ID'] = make_msgid(domain=self.config.from_email.split('@')[-1])
        if reply_to or self.config.reply_to_email:
            message['Reply-To'] = reply_to or self.config.reply_to_email
        return message

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Send an email via SMTP.

        Returns:
            Dict with 'success', 'message_id', and 'error' keys
        """
        if not self.config.is_configured():
            logger.info("email_not_sent to=%s subject=%r (SMTP not configured)", to_email, subject)
            return {'success': False, 'error': NOT_CONFIGURED}

        try:
            message = self.build_message(to_email, subject, html_content, text_content, reply_to, attachments)
            result = await self._send_via_smtp(message)
            logger.info("email_sent to=%s subject=%r message_id=%s", to_email, subject, result['message_id'])
            return result
        except (aiosmtplib.SMTPException, OSError) as e:
            error_msg = f"Failed to send email to {to_email}: {e}"
            logger.error(error_msg, exc_info=True)
            return {'success': False, 'error': error_msg}

    async def _send_via_smtp(self, message: MIMEMultipart) -> Dict[str, Any]:
        smtp_kwargs = {
            'hostname': self.config.smtp_host,
            'port': self.config.smtp_port,
            'use_tls': self.config.smtp_use_tls,
            'start_tls': False if self.config.smtp_use_tls else self.config.smtp_start_tls,
        }
        async with aiosmtplib.SMTP(**smtp_kwargs) as smtp:
            if self.config.smtp_username and self.config.smtp_password:
                await smtp.login(self.config.smtp_username, self.config.smtp_password)
            result = await smtp.send_message(message)
        return {
            'success': True,
            'provider': 'smtp',
            'message_id': message.get('Message-ID', ''),
            'smtp_result': result,
        }

    def _add_attachment(self, message: MIMEMultipart, attachment: EmailAttachment):
        mime_type, *params = [p.strip() for p in attachment.content_type.split(';')]
        maintype, _, subtype = mime_type.partition('/')
        extra = dict(p.split('=', 1) for p in params if '=' in p)
        part = MIMEBase(maintype or 'application', subtype or 'octet-stream', **extra)
        payload = attachment.content.encode('utf-8') if isinstance(attachment.content, str) else attachment.content
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header('Content-Disposition', f'attachment; filename="{attachment.filename}"')
        message.attach(part)

    async def test_connection(self) -> Dict[str, Any]:
        """Test SMTP connection and configuration."""
        validation_errors = self.config.validate()
        if validation_errors:
            return {'success': False, 'error': f"Configuration errors: {', '.join(validation_errors)}"}
        try:
            async with aiosmtplib.SMTP(hostname=self.config.smtp_host, port=self.config.smtp_port,
                                       use_tls=self.config.smtp_use_tls) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
            return {'success': True, 'message': f"Successfully connected to {self.config.smtp_host}:{self.config.smtp_port}"}
        except (aiosmtplib.SMTPException, OSError) as e:
            return {'success': False, 'error': f"Connection test failed: {e}"}


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get singleton email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def send_email_sync(
    to_email: str,
    subject: str,
    html_content: str,
    text_content: Optional[str] = None,
) -> Dict[str, Any]:
    """Synchronous wrapper around the SMTP transport."""
    return asyncio.run(get_email_service().send_email(
        to_email=to_email,
        subject=subject,
        html_content=html_content,
        text_content=text_content,
    ))
