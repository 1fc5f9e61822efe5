"""
Transactional Email Service

Delivers email through the Mailgun HTTP API. Credentials come from the
environment and can be overridden by the admin-managed settings table
(``mailgun_api_key`` / ``mailgun_domain``). When no credentials are available
the message is logged instead of sent so local development still surfaces
reset and verification links.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import requests
from sqlalchemy.orm import Session

from techdeputies.config import SITE_NAME
from techdeputies.db.repositories import settings as settings_repo

logger = logging.getLogger(__name__)

MAILGUN_API_BASE = "https://api.mailgun.net/v3"
NOT_CONFIGURED = "Email service not configured"


@dataclass
class EmailAttachment:
    filename: str
    content: Union[str, bytes]
    content_type: str = "application/octet-stream"

    def as_file_tuple(self):
        payload = self.content.encode("utf-8") if isinstance(self.content, str) else self.content
        return ("attachment", (self.filename, payload, self.content_type))


class TransactionalEmailConfig:
    """Configuration for the Mailgun sender."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        domain: Optional[str] = None,
        from_email: Optional[str] = None,
    ):
        self.mailgun_api_key = api_key if api_key is not None else os.getenv('MAILGUN_API_KEY', '')
        self.mailgun_domain = domain if domain is not None else os.getenv('MAILGUN_DOMAIN', '')
        default_from = f"noreply@{self.mailgun_domain}" if self.mailgun_domain else "noreply@thetechdeputies.com"
        self.from_email = from_email or os.getenv('MAILGUN_FROM_EMAIL', default_from)
        self.from_name = os.getenv('MAILGUN_FROM_NAME', SITE_NAME)
        self.reply_to_email = os.getenv('REPLY_TO_EMAIL', '')
        self.timeout_seconds = float(os.getenv('MAILGUN_TIMEOUT_SECONDS', '15'))

    @classmethod
    def from_settings(cls, db: Optional[Session]) -> "TransactionalEmailConfig":
        """Build config where stored settings win over environment variables."""
        if db is None:
            return cls()
        api_key = settings_repo.get_setting(db, 'mailgun_api_key') or None
        domain = settings_repo.get_setting(db, 'mailgun_domain') or None
        return cls(api_key=api_key, domain=domain)

    def is_configured(self) -> bool:
        return bool(self.mailgun_api_key and self.mailgun_domain and self.from_email)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.mailgun_api_key:
            errors.append("MAILGUN_API_KEY is required")
        if not self.mailgun_domain:
            errors.append("MAILGUN_DOMAIN is required")
        if not self.from_email:
            errors.append("MAILGUN_FROM_EMAIL is required")
        return errors


class MailgunSender:
    """Blocking Mailgun client; one HTTP request per message."""

    def __init__(self, config: TransactionalEmailConfig):
        self.config = config
        self.base_url = f"{MAILGUN_API_BASE}/{self.config.mailgun_domain}"

    def send(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "from": f"{self.config.from_name} <{self.config.from_email}>",
            "to": to_email,
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            data["text"] = text_content
        if self.config.reply_to_email:
            data["h:Reply-To"] = self.config.reply_to_email
        if tags:
            data["o:tag"] = list(tags)

        files = [a.as_file_tuple() for a in attachments] if attachments else None
        try:
            response = requests.post(
                f"{self.base_url}/messages",
                auth=("api", self.config.mailgun_api_key),
                data=data,
                files=files,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            return {'success': False, 'provider': 'mailgun', 'error': str(e)}

        if response.status_code == 200:
            result = response.json()
            return {
                'success': True,
                'provider': 'mailgun',
                'message_id': result.get('id', ''),
                'provider_response': result,
            }
        return {
            'success': False,
            'provider': 'mailgun',
            'error': f"HTTP {response.status_code}: {response.text}",
        }


class TransactionalEmailService:
    """Main transactional email service; delegates delivery to Mailgun."""

    def __init__(self, config: Optional[TransactionalEmailConfig] = None):
        self.config = config or TransactionalEmailConfig()
        self.sender: Optional[MailgunSender] = None
        if self.config.is_configured():
            self.sender = MailgunSender(self.config)
        else:
            logger.warning("Mailgun not configured; emails will be logged only")

    @classmethod
    def for_db(cls, db: Optional[Session]) -> "TransactionalEmailService":
        return cls(TransactionalEmailConfig.from_settings(db))

    def is_configured(self) -> bool:
        return self.sender is not None

    def send_email_sync(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        attachments: Optional[List[EmailAttachment]] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Send an email via Mailgun.

        Returns:
            Dict with 'success', 'message_id' and 'error' keys
        """
        if self.sender is None:
            logger.info(
                "email_not_sent to=%s subject=%r body=%s",
                to_email, subject, (text_content or html_content)[:2000],
            )
            return {'success': False, 'error': NOT_CONFIGURED}

        try:
            result = self.sender.send(
                to_email=to_email,
                subject=subject,
                html_content=html_content,
                text_content=text_content,
                attachments=attachments,
                tags=tags,
            )
        except Exception as e:
            logger.error("Email service error: %s", e, exc_info=True)
            return {'success': False, 'error': f"Email service error: {e}"}

        if result['success']:
            logger.info("email_sent to=%s subject=%r message_id=%s", to_email, subject, result.get('message_id'))
        else:
            logger.error("Email sending failed to=%s: %s", to_email, result['error'])
        return result

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        return self.send_email_sync(to_email, subject, html_content, text_content, **kwargs)

    def test_connection(self) -> Dict[str, Any]:
        """Check the configured domain is reachable with the current key."""
        errors = self.config.validate()
        if errors:
            return {'success': False, 'error': f"Configuration errors: {', '.join(errors)}"}
        try:
            response = requests.get(
                f"{MAILGUN_API_BASE}/domains/{self.config.mailgun_domain}",
                auth=("api", self.config.mailgun_api_key),
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            return {'success': False, 'error': str(e)}
        if response.status_code == 200:
            return {'success': True, 'domain': self.config.mailgun_domain}
        return {'success': False, 'error': f"HTTP {response.status_code}: {response.text}"}
